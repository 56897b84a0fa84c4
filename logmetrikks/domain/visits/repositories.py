"""Repositories for visit and checkpoint data."""
from __future__ import annotations

from advanced_alchemy.repository import SQLAlchemySyncRepository

from logmetrikks.domain.visits.models import Visit, IngestCheckpoint


class VisitRepository(SQLAlchemySyncRepository[Visit]):
    """Repository for Visit model."""

    model_type = Visit


class IngestCheckpointRepository(SQLAlchemySyncRepository[IngestCheckpoint]):
    """Repository for IngestCheckpoint model."""

    model_type = IngestCheckpoint

    def get_by_source(self, source: str) -> IngestCheckpoint | None:
        """Find the checkpoint of a log source.

        Args:
            source: Resolved path of the log file.

        Returns:
            IngestCheckpoint if found, None otherwise.
        """
        return self.get_one_or_none(source=source)

    def save_mark(self, source: str, high_water_mark: int, rows_at_mark: int) -> IngestCheckpoint:
        """Create or update the checkpoint of a source without committing.

        The caller owns the transaction so the mark is stored together with
        the rows it covers.
        """
        checkpoint = self.get_by_source(source)
        if checkpoint is None:
            return self.add(
                IngestCheckpoint(source=source, high_water_mark=high_water_mark, rows_at_mark=rows_at_mark),
                auto_commit=False,
            )
        checkpoint.high_water_mark = high_water_mark
        checkpoint.rows_at_mark = rows_at_mark
        return self.update(checkpoint, auto_commit=False)
