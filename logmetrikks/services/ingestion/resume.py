"""High-water-mark bookkeeping for incremental runs over a growing log file."""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class Checkpoint:
    """Persisted resume position of a log source.

    Attributes:
        high_water_mark: Largest epoch_ts (ms) of any stored visit.
        rows_at_mark: Number of stored visits whose epoch_ts equals the mark.
    """

    high_water_mark: int = 0
    rows_at_mark: int = 0

    def advanced(self, timestamps: Iterable[int]) -> "Checkpoint":
        """Checkpoint after the given visit timestamps were stored (in file order)."""
        mark, rows = self.high_water_mark, self.rows_at_mark
        for epoch_ts in timestamps:
            if epoch_ts > mark:
                mark, rows = epoch_ts, 1
            elif epoch_ts == mark:
                rows += 1
        return Checkpoint(high_water_mark=mark, rows_at_mark=rows)


class ResumeTracker:
    """Filters out visits that a previous run already stored.

    Candidates older than the loaded mark are dropped. Of the candidates equal
    to the mark, the first `rows_at_mark` are dropped too, since a previous run
    stored them; every later one is kept. new_high_water_mark follows the
    largest kept timestamp.
    """

    def __init__(self, checkpoint: Checkpoint | None = None) -> None:
        self.checkpoint = checkpoint or Checkpoint()
        self.high_water_mark: int = self.checkpoint.high_water_mark
        self.new_high_water_mark: int = self.high_water_mark
        self._skip_at_mark: int = self.checkpoint.rows_at_mark

        # Statistics
        self.kept: int = 0
        self.dropped: int = 0

    def admit(self, epoch_ts: int) -> bool:
        """Return True if a visit with this timestamp is new and should be stored."""
        if epoch_ts < self.high_water_mark:
            self.dropped += 1
            return False
        if epoch_ts == self.high_water_mark and self._skip_at_mark > 0:
            self._skip_at_mark -= 1
            self.dropped += 1
            return False

        if epoch_ts > self.new_high_water_mark:
            self.new_high_water_mark = epoch_ts
        self.kept += 1
        return True
