from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from advanced_alchemy.exceptions import AdvancedAlchemyError
from sqlalchemy.exc import SQLAlchemyError

from logmetrikks.domain.visits.models import Visit
from logmetrikks.exceptions import BatchWriteError
from logmetrikks.services.logparser.constants import DEFAULT_BATCH_SIZE
from .resume import Checkpoint

if TYPE_CHECKING:
    from logmetrikks.domain.visits.repositories import VisitRepository, IngestCheckpointRepository
    from logmetrikks.services.enrichment.schemas import EnrichedVisit


logger = logging.getLogger(__name__)


class BatchWriter:
    """Buffers enriched visits and stores them in all-or-nothing batches.

    Each flush inserts the buffered visits and, when a source is set, the
    checkpoint covering them in one transaction. A failed flush is rolled back
    entirely and raised as BatchWriteError; it is not retried.

    Example:
        writer = BatchWriter(visit_repo, checkpoint_repo, source="/var/log/nginx/access.log")
        for visit in visits:
            writer.add(visit)
        writer.close()
    """

    def __init__(
        self,
        visit_repo: "VisitRepository",
        checkpoint_repo: "IngestCheckpointRepository | None" = None,
        *,
        source: str | None = None,
        checkpoint: Checkpoint | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        """Initialize the batch writer.

        Args:
            visit_repo: Repository for Visit model.
            checkpoint_repo: Repository for IngestCheckpoint model. Checkpoints are skipped when None.
            source: Log source the checkpoint belongs to.
            checkpoint: Checkpoint already stored for the source.
            batch_size: Number of buffered visits that triggers a flush.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.visit_repo: VisitRepository = visit_repo
        self.checkpoint_repo: IngestCheckpointRepository | None = checkpoint_repo
        self.source: str | None = source
        self.checkpoint: Checkpoint = checkpoint or Checkpoint()
        self.batch_size: int = batch_size

        self._buffer: list[EnrichedVisit] = []

        # Statistics
        self.flush_count: int = 0
        self.rows_written: int = 0

    @property
    def pending(self) -> int:
        """Number of buffered, not yet stored visits."""
        return len(self._buffer)

    def add(self, visit: "EnrichedVisit") -> None:
        """Buffer a visit, flushing when the buffer reaches batch_size."""
        self._buffer.append(visit)
        if len(self._buffer) >= self.batch_size:
            self.flush()

    def flush(self) -> int:
        """Store all buffered visits as one transaction.

        Returns:
            Number of rows written. An empty buffer is a no-op returning 0.

        Raises:
            BatchWriteError: The transaction failed; none of its rows were stored.
        """
        if not self._buffer:
            return 0

        rows = len(self._buffer)
        checkpoint = self.checkpoint.advanced(visit.epoch_ts for visit in self._buffer)
        session = self.visit_repo.session
        try:
            self.visit_repo.add_many([Visit(**visit.to_row()) for visit in self._buffer], auto_commit=False)
            if self.checkpoint_repo is not None and self.source is not None:
                self.checkpoint_repo.save_mark(self.source, checkpoint.high_water_mark, checkpoint.rows_at_mark)
            session.commit()
        except (AdvancedAlchemyError, SQLAlchemyError) as e:
            session.rollback()
            logger.exception("Batch of %d visits rolled back", rows)
            raise BatchWriteError(f"Failed to write batch of {rows} visits: {e}", rows=rows) from e

        self._buffer.clear()
        self.checkpoint = checkpoint
        self.flush_count += 1
        self.rows_written += rows
        logger.debug(
            "Committed %d visits (high_water_mark=%d, rows_at_mark=%d)",
            rows,
            checkpoint.high_water_mark,
            checkpoint.rows_at_mark,
        )
        return rows

    def close(self) -> int:
        """Flush whatever is left at end of input."""
        return self.flush()
