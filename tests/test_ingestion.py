import shutil
from pathlib import Path

import pytest

from logmetrikks.db.store import Store
from logmetrikks.domain.visits.repositories import IngestCheckpointRepository, VisitRepository
from logmetrikks.exceptions import IngestionBusyError, LogSourceMissingError
from logmetrikks.services.enrichment import Enricher, GeoResolver
from logmetrikks.services.ingestion import (
    BatchWriter,
    IngestionPipeline,
    IngestionService,
    LineStatus,
    ResumeTracker,
)
from logmetrikks.services.logparser import LogParser

from conftest import INVALID_LOG_PATH, VALID_LOG_PATH


@pytest.fixture
def log_file(tmp_path: Path) -> Path:
    """Writable copy of the valid access log."""
    path = tmp_path / "app-access.log"
    shutil.copy(VALID_LOG_PATH, path)
    return path


@pytest.fixture
def ingestion_service(store: Store, log_file: Path, fake_reader) -> IngestionService:
    return IngestionService(store, log_file, reader=fake_reader, batch_size=2)


def count_visits(store: Store) -> int:
    with store.session() as session:
        return VisitRepository(session=session).count()


@pytest.fixture
def pipeline(store: Store, fake_reader):
    with store.session() as session:
        yield IngestionPipeline(
            parser=LogParser(),
            enricher=Enricher(GeoResolver(fake_reader)),
            tracker=ResumeTracker(),
            writer=BatchWriter(VisitRepository(session=session), batch_size=2),
        )


# Per-line outcomes

@pytest.mark.parametrize("line", ["", "short", None, 42, b"bytes are not text"])
def test_short_or_non_text_lines_are_skipped(pipeline: IngestionPipeline, line) -> None:
    result = pipeline.process_line(line)
    assert result.status is LineStatus.SKIPPED_SHORT
    assert result.visit is None


def test_malformed_lines_are_skipped(pipeline: IngestionPipeline, load_invalid_logs: list[str]) -> None:
    for line in load_invalid_logs:
        result = pipeline.process_line(line)
        assert result.status is LineStatus.SKIPPED_MALFORMED
        assert result.error


def test_valid_line_is_processed(pipeline: IngestionPipeline, load_valid_log: list[str]) -> None:
    result = pipeline.process_line(load_valid_log[0])
    assert result.status is LineStatus.PROCESSED
    assert result.visit is not None
    assert result.visit.ip == "203.0.113.5"


def test_pipeline_run_mixed_input(
    pipeline: IngestionPipeline,
    load_valid_log: list[str],
    load_invalid_logs: list[str],
) -> None:
    lines = ["", *load_invalid_logs, *load_valid_log, "x"]

    stats = pipeline.run(lines)

    assert stats.processed == len(load_valid_log)
    assert stats.skipped_short == 2
    assert stats.skipped_malformed == len(load_invalid_logs)
    assert pipeline.writer.rows_written == len(load_valid_log)
    assert pipeline.writer.pending == 0


def test_pipeline_with_only_noise_writes_nothing(pipeline: IngestionPipeline) -> None:
    stats = pipeline.run(["", "a", None])

    assert stats.processed == 0
    assert stats.skipped == 3
    assert pipeline.writer.flush_count == 0


# Service runs

def test_run_once_stores_every_valid_line(
    ingestion_service: IngestionService, store: Store, load_valid_log: list[str]
) -> None:
    summary = ingestion_service.run_once()

    assert summary.lines_processed == len(load_valid_log)
    assert summary.rows_written == len(load_valid_log)
    assert summary.batches == 3
    assert count_visits(store) == len(load_valid_log)
    # 10/Oct/2023:14:10:00 +0000 is the latest line
    assert summary.high_water_mark == 1696947000000


def test_geo_lookup_once_per_address(ingestion_service: IngestionService, fake_reader) -> None:
    summary = ingestion_service.run_once()

    # 203.0.113.5 appears twice in the log
    assert fake_reader.calls.count("203.0.113.5") == 1
    assert summary.geo_lookups == 4


def test_second_run_adds_nothing(ingestion_service: IngestionService, store: Store) -> None:
    first = ingestion_service.run_once()
    second = ingestion_service.run_once()

    assert second.rows_written == 0
    assert second.stats.skipped_stale == first.lines_processed
    assert second.high_water_mark == first.high_water_mark
    assert count_visits(store) == first.rows_written
    assert ingestion_service.total_runs == 2


def test_resume_picks_up_appended_lines(
    ingestion_service: IngestionService, store: Store, log_file: Path, load_valid_log: list[str]
) -> None:
    ingestion_service.run_once()

    # Same millisecond as the current last line, plus one later line
    with open(log_file, "a", encoding="utf-8") as f:
        f.write(load_valid_log[4] + "\n")
        f.write(load_valid_log[4].replace("14:10:00", "14:11:00") + "\n")

    summary = ingestion_service.run_once()

    assert summary.rows_written == 2
    assert count_visits(store) == len(load_valid_log) + 2

    with store.session() as session:
        checkpoint = IngestCheckpointRepository(session=session).get_by_source(ingestion_service.source_key)
    assert checkpoint is not None
    assert checkpoint.high_water_mark == 1696947060000
    assert checkpoint.rows_at_mark == 1


def test_resume_disabled_reingests(store: Store, log_file: Path, fake_reader, load_valid_log: list[str]) -> None:
    service = IngestionService(store, log_file, reader=fake_reader, resume=False)

    service.run_once()
    service.run_once()

    assert count_visits(store) == 2 * len(load_valid_log)


def test_run_without_geoip_reader(store: Store, log_file: Path) -> None:
    service = IngestionService(store, log_file, reader=None)

    summary = service.run_once()

    assert summary.geo_lookups == 0
    with store.session() as session:
        assert {visit.country_code for visit in VisitRepository(session=session).list()} == {""}


def test_invalid_only_file(store: Store, tmp_path: Path) -> None:
    path = tmp_path / "broken.log"
    shutil.copy(INVALID_LOG_PATH, path)
    service = IngestionService(store, path)

    summary = service.run_once()

    assert summary.lines_processed == 0
    assert summary.rows_written == 0
    assert summary.high_water_mark == 0


def test_missing_log_file(store: Store, tmp_path: Path) -> None:
    service = IngestionService(store, tmp_path / "missing.log")

    with pytest.raises(LogSourceMissingError):
        service.run_once()
    assert service.total_runs == 0
    assert service.is_running is False


def test_concurrent_run_is_rejected(ingestion_service: IngestionService) -> None:
    ingestion_service._lock.acquire()
    try:
        assert ingestion_service.is_running is True
        with pytest.raises(IngestionBusyError):
            ingestion_service.run_once()
    finally:
        ingestion_service._lock.release()

    assert ingestion_service.run_once().rows_written > 0


def test_summary_to_dict(ingestion_service: IngestionService) -> None:
    data = ingestion_service.run_once().to_dict()

    assert data["lines_processed"] == 5
    assert data["skipped_malformed"] == 0
    assert data["rows_written"] == 5
    assert isinstance(data["started_at"], str)


# Failure boundary inside a pass

def far_future_line(line: str) -> str:
    return line.replace("10/Oct/2023:13:55:36 +0000", "31/Dec/9999:23:59:59 -0100")


def test_out_of_range_timestamp_keeps_batch(pipeline: IngestionPipeline, load_valid_log: list[str]) -> None:
    stats = pipeline.run([load_valid_log[1], far_future_line(load_valid_log[0]), load_valid_log[2]])

    assert stats.processed == 2
    assert stats.skipped_malformed == 1
    assert pipeline.writer.rows_written == 2


def test_network_address_with_anonymization(store: Store, fake_reader, load_valid_log: list[str]) -> None:
    network_line = load_valid_log[0].replace("203.0.113.5", "10.0.0.0/8", 1)
    with store.session() as session:
        pipeline = IngestionPipeline(
            parser=LogParser(),
            enricher=Enricher(GeoResolver(fake_reader), anonymize=True),
            tracker=ResumeTracker(),
            writer=BatchWriter(VisitRepository(session=session), batch_size=2),
        )
        stats = pipeline.run([load_valid_log[1], network_line, load_valid_log[2]])

    assert stats.processed == 3
    assert pipeline.writer.rows_written == 3


def test_enrichment_failure_skips_only_that_line(
    pipeline: IngestionPipeline, load_valid_log: list[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    resolver = pipeline.enricher.geo_resolver
    country_code = resolver.country_code

    def failing_country_code(ip: str) -> str:
        if ip == "192.0.2.44":
            raise RuntimeError("corrupt database record")
        return country_code(ip)

    monkeypatch.setattr(resolver, "country_code", failing_country_code)

    stats = pipeline.run([load_valid_log[0], load_valid_log[3], load_valid_log[1]])

    assert stats.processed == 2
    assert stats.skipped_error == 1
    assert pipeline.writer.rows_written == 2
    assert pipeline.writer.pending == 0


def test_enrichment_failure_result(
    pipeline: IngestionPipeline, load_valid_log: list[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken_enrich(record):
        raise OverflowError("date value out of range")

    monkeypatch.setattr(pipeline.enricher, "enrich", broken_enrich)

    result = pipeline.process_line(load_valid_log[0])

    assert result.status is LineStatus.SKIPPED_ERROR
    assert result.visit is None
    assert result.error == "date value out of range"
