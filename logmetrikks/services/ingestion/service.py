"""Log ingestion service - streams a log file into the visits table.

This service orchestrates:
- Line reading via LineSource and parsing via LogParser
- Enrichment via Enricher (device, user agent, URL, country)
- Incremental resume via ResumeTracker and the persisted checkpoint
- Batched persistence via BatchWriter and the visit/checkpoint repositories

Everything a run mutates (geo cache, tracker, write buffer) is created per run
and passed into IngestionPipeline explicitly.
"""
from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from logmetrikks.domain.visits.repositories import VisitRepository, IngestCheckpointRepository
from logmetrikks.exceptions import IngestionBusyError, LogSourceMissingError, MalformedLineError
from logmetrikks.services.enrichment import Enricher, GeoCache, GeoResolver, create_reader
from logmetrikks.services.logparser import LineSource, LogParser
from logmetrikks.services.logparser.constants import DEFAULT_BATCH_SIZE, MIN_LINE_LENGTH
from .resume import Checkpoint, ResumeTracker
from .writer import BatchWriter

if TYPE_CHECKING:
    from geoip2.database import Reader

    from logmetrikks.config.settings import Settings
    from logmetrikks.db.store import Store
    from logmetrikks.services.enrichment.schemas import EnrichedVisit


logger = logging.getLogger(__name__)


class LineStatus(str, Enum):
    """Outcome of processing one line."""

    PROCESSED = "processed"
    SKIPPED_SHORT = "skipped_short"
    SKIPPED_MALFORMED = "skipped_malformed"
    SKIPPED_STALE = "skipped_stale"
    SKIPPED_ERROR = "skipped_error"


@dataclass
class LineResult:
    """Per-line result returned by IngestionPipeline.process_line."""

    status: LineStatus
    visit: EnrichedVisit | None = None
    error: str | None = None


@dataclass
class RunStats:
    """Line counters of one pass."""

    processed: int = 0
    skipped_short: int = 0
    skipped_malformed: int = 0
    skipped_stale: int = 0
    skipped_error: int = 0

    def record(self, result: LineResult) -> None:
        if result.status is LineStatus.PROCESSED:
            self.processed += 1
        elif result.status is LineStatus.SKIPPED_SHORT:
            self.skipped_short += 1
        elif result.status is LineStatus.SKIPPED_MALFORMED:
            self.skipped_malformed += 1
        elif result.status is LineStatus.SKIPPED_STALE:
            self.skipped_stale += 1
        else:
            self.skipped_error += 1

    @property
    def skipped(self) -> int:
        return self.skipped_short + self.skipped_malformed + self.skipped_stale + self.skipped_error


@dataclass
class RunSummary:
    """Summary of a completed ingestion run."""

    source: str
    started_at: datetime
    elapsed_seconds: float
    high_water_mark: int
    lines_processed: int
    lines_skipped: int
    rows_written: int
    batches: int
    geo_lookups: int
    stats: RunStats = field(default_factory=RunStats)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "started_at": self.started_at.isoformat(),
            "elapsed_seconds": self.elapsed_seconds,
            "high_water_mark": self.high_water_mark,
            "lines_processed": self.lines_processed,
            "lines_skipped": self.lines_skipped,
            "skipped_short": self.stats.skipped_short,
            "skipped_malformed": self.stats.skipped_malformed,
            "skipped_stale": self.stats.skipped_stale,
            "skipped_error": self.stats.skipped_error,
            "rows_written": self.rows_written,
            "batches": self.batches,
            "geo_lookups": self.geo_lookups,
        }


class IngestionPipeline:
    """Single pass of lines -> parse -> resume filter -> enrich -> batch write.

    Parse failures, enrichment failures and stale lines are per-line outcomes; only storage errors
    (BatchWriteError) end the pass. Buffered visits are flushed at end of input.
    """

    def __init__(
        self,
        parser: LogParser,
        enricher: Enricher,
        tracker: ResumeTracker,
        writer: BatchWriter,
        *,
        min_line_length: int = MIN_LINE_LENGTH,
    ) -> None:
        self.parser = parser
        self.enricher = enricher
        self.tracker = tracker
        self.writer = writer
        self.min_line_length = min_line_length
        self.stats = RunStats()

    def process_line(self, line: Any) -> LineResult:
        """Parse, filter and enrich one raw line. Never raises for bad input."""
        if not isinstance(line, str) or len(line) < self.min_line_length:
            return LineResult(LineStatus.SKIPPED_SHORT)

        try:
            record = self.parser.parse_line(line)
        except MalformedLineError as e:
            logger.debug("Skipping malformed line: '%s' (%s)", line, e.reason)
            return LineResult(LineStatus.SKIPPED_MALFORMED, error=e.reason)

        # The timestamp is known after parsing, so already stored lines skip enrichment
        if not self.tracker.admit(record.epoch_ts):
            return LineResult(LineStatus.SKIPPED_STALE)

        try:
            visit = self.enricher.enrich(record)
        except Exception as e:
            logger.debug("Skipping line that failed enrichment: '%s' (%s)", line, e)
            return LineResult(LineStatus.SKIPPED_ERROR, error=str(e))
        return LineResult(LineStatus.PROCESSED, visit=visit)

    def run(self, lines: Iterable[Any]) -> RunStats:
        """Consume lines until exhausted, then flush the remaining buffer.

        Raises:
            BatchWriteError: A batch could not be stored. Earlier batches stay stored.
        """
        for line in lines:
            result = self.process_line(line)
            self.stats.record(result)
            if result.visit is not None:
                self.writer.add(result.visit)
        self.writer.close()
        return self.stats


class IngestionService:
    """Runs ingestion passes of one log file against a store.

    Holds the long-lived collaborators (store, GeoIP reader) and builds a fresh
    pipeline for every run. Only one run executes at a time.

    Example:
        service = IngestionService(store, log_path="app-access.log", reader=create_reader(path))
        summary = service.run_once()
    """

    def __init__(
        self,
        store: "Store",
        log_path: Path | str,
        *,
        reader: "Reader | Any | None" = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        min_line_length: int = MIN_LINE_LENGTH,
        anonymize_ip: bool = False,
        resume: bool = True,
    ) -> None:
        """Initialize the ingestion service.

        Args:
            store: Store the visits are written to. Must already be set up.
            log_path: Path of the access log to ingest.
            reader: GeoIP2 reader. Country codes stay empty without one.
            batch_size: Visits per committed batch.
            min_line_length: Lines shorter than this are skipped as noise.
            anonymize_ip: Truncate client addresses before storage and lookup.
            resume: Skip lines already covered by the stored checkpoint.
        """
        self.store = store
        self.source = LineSource(log_path)
        self.reader = reader
        self.batch_size = batch_size
        self.min_line_length = min_line_length
        self.anonymize_ip = anonymize_ip
        self.resume = resume

        self._lock = threading.Lock()
        self.last_summary: RunSummary | None = None

        # Statistics across runs
        self.total_runs: int = 0
        self.total_processed: int = 0
        self.total_rows_written: int = 0

        if reader is None:
            logger.warning("No GeoIP reader configured, country codes will be empty")

    @classmethod
    def from_settings(cls, store: "Store", settings: "Settings") -> "IngestionService":
        reader = None
        if settings.geoip.db_path.exists():
            reader = create_reader(settings.geoip.db_path, settings.geoip.locales)
        else:
            logger.warning("GeoIP file %s does not exist.", settings.geoip.db_path)
        return cls(
            store,
            settings.logparser.log_path,
            reader=reader,
            batch_size=settings.logparser.batch_size,
            min_line_length=settings.logparser.min_line_length,
            anonymize_ip=settings.logparser.anonymize_ip,
            resume=settings.logparser.resume,
        )

    @property
    def source_key(self) -> str:
        """Checkpoint key of the log file."""
        return str(self.source.log_path.resolve())

    @property
    def is_running(self) -> bool:
        """Return True if a run is in progress."""
        return self._lock.locked()

    def run_once(self) -> RunSummary:
        """Ingest the log file once.

        Raises:
            IngestionBusyError: Another run is in progress.
            LogSourceMissingError: The log file does not exist.
            BatchWriteError: A batch could not be stored.
        """
        if not self._lock.acquire(blocking=False):
            raise IngestionBusyError("Ingestion already running")
        try:
            summary = self._run()
        finally:
            self._lock.release()

        self.last_summary = summary
        self.total_runs += 1
        self.total_processed += summary.lines_processed
        self.total_rows_written += summary.rows_written
        return summary

    def _run(self) -> RunSummary:
        if not self.source.exists():
            logger.error("Cannot start ingestion: log file does not exist at %s", self.source.log_path)
            raise LogSourceMissingError(f"Log file not found: {self.source.log_path}")

        started_at = datetime.now(timezone.utc)
        start = time.perf_counter()

        with self.store.session() as session:
            visit_repo = VisitRepository(session=session)
            checkpoint_repo = IngestCheckpointRepository(session=session)

            checkpoint = Checkpoint()
            if self.resume:
                if stored := checkpoint_repo.get_by_source(self.source_key):
                    checkpoint = Checkpoint(stored.high_water_mark, stored.rows_at_mark)
                # Release the read transaction before the pass starts
                session.commit()
            logger.info(
                "Starting ingestion of %s (high_water_mark=%d, batch_size=%d)",
                self.source.log_path,
                checkpoint.high_water_mark,
                self.batch_size,
            )

            geo_resolver = GeoResolver(self.reader, GeoCache())
            pipeline = IngestionPipeline(
                parser=LogParser(),
                enricher=Enricher(geo_resolver, anonymize=self.anonymize_ip),
                tracker=ResumeTracker(checkpoint),
                writer=BatchWriter(
                    visit_repo,
                    checkpoint_repo,
                    source=self.source_key,
                    checkpoint=checkpoint,
                    batch_size=self.batch_size,
                ),
                min_line_length=self.min_line_length,
            )
            try:
                stats = pipeline.run(self.source)
            except Exception:
                logger.exception(
                    "Ingestion of %s aborted after %d stored visits",
                    self.source.log_path,
                    pipeline.writer.rows_written,
                )
                raise

        summary = RunSummary(
            source=self.source_key,
            started_at=started_at,
            elapsed_seconds=round(time.perf_counter() - start, 3),
            high_water_mark=pipeline.writer.checkpoint.high_water_mark,
            lines_processed=stats.processed,
            lines_skipped=stats.skipped,
            rows_written=pipeline.writer.rows_written,
            batches=pipeline.writer.flush_count,
            geo_lookups=geo_resolver.lookups,
            stats=stats,
        )
        logger.info(
            "Ingestion finished in %.3fs: %d lines processed, %d skipped, new high_water_mark=%d",
            summary.elapsed_seconds,
            summary.lines_processed,
            summary.lines_skipped,
            summary.high_water_mark,
        )
        return summary
