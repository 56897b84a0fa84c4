import pytest
from sqlalchemy.exc import OperationalError

from logmetrikks.domain.visits.repositories import IngestCheckpointRepository, VisitRepository
from logmetrikks.exceptions import BatchWriteError
from logmetrikks.services.enrichment.schemas import DeviceType, EnrichedVisit
from logmetrikks.services.ingestion import BatchWriter, Checkpoint

SOURCE = "/var/log/nginx/app-access.log"


def make_visit(epoch_ts: int, ip: str | None = "203.0.113.5") -> EnrichedVisit:
    return EnrichedVisit(
        iso_date="2023-10-10T13:55:36.000Z",
        epoch_ts=epoch_ts,
        day="2023-10-10",
        hour="2023-10-10T13:00:00.000Z",
        ip=ip,  # type: ignore[arg-type]
        url="/index.html",
        device_type=DeviceType.DESKTOP,
    )


@pytest.fixture
def session(store):
    with store.session() as session:
        yield session


@pytest.fixture
def visit_repo(session) -> VisitRepository:
    return VisitRepository(session=session)


@pytest.fixture
def checkpoint_repo(session) -> IngestCheckpointRepository:
    return IngestCheckpointRepository(session=session)


def test_flushes_when_batch_is_full(visit_repo: VisitRepository) -> None:
    writer = BatchWriter(visit_repo, batch_size=3)

    for ts in range(4):
        writer.add(make_visit(ts))

    # batch_size + 1 visits: one full batch stored, one buffered
    assert writer.flush_count == 1
    assert writer.rows_written == 3
    assert writer.pending == 1
    assert visit_repo.count() == 3


def test_close_flushes_remainder(visit_repo: VisitRepository) -> None:
    writer = BatchWriter(visit_repo, batch_size=3)
    for ts in range(4):
        writer.add(make_visit(ts))

    assert writer.close() == 1
    assert writer.pending == 0
    assert writer.flush_count == 2
    assert visit_repo.count() == 4


def test_flush_empty_buffer_is_noop(visit_repo: VisitRepository) -> None:
    writer = BatchWriter(visit_repo, batch_size=3)

    assert writer.flush() == 0
    assert writer.flush_count == 0


def test_invalid_batch_size(visit_repo: VisitRepository) -> None:
    with pytest.raises(ValueError):
        BatchWriter(visit_repo, batch_size=0)


def test_stored_visit_columns(visit_repo: VisitRepository) -> None:
    writer = BatchWriter(visit_repo, batch_size=10)
    writer.add(make_visit(1696946136000))
    writer.close()

    stored = visit_repo.list()[0]
    assert stored.epoch_ts == 1696946136000
    assert stored.device_type == "desktop"
    assert stored.browser == "Other"
    assert stored.country_code == ""


def test_failed_batch_is_rolled_back(visit_repo: VisitRepository) -> None:
    writer = BatchWriter(visit_repo, batch_size=10)
    writer.add(make_visit(1))
    writer.add(make_visit(2, ip=None))

    with pytest.raises(BatchWriteError) as exc_info:
        writer.close()

    assert exc_info.value.rows == 2
    assert writer.rows_written == 0
    assert writer.pending == 2
    assert visit_repo.count() == 0


def test_earlier_batches_survive_a_failure(visit_repo: VisitRepository) -> None:
    writer = BatchWriter(visit_repo, batch_size=2)
    writer.add(make_visit(1))
    writer.add(make_visit(2))

    with pytest.raises(BatchWriteError):
        writer.add(make_visit(3))
        writer.add(make_visit(4, ip=None))

    assert writer.rows_written == 2
    assert visit_repo.count() == 2


def test_checkpoint_saved_with_batch(
    visit_repo: VisitRepository, checkpoint_repo: IngestCheckpointRepository
) -> None:
    writer = BatchWriter(visit_repo, checkpoint_repo, source=SOURCE, batch_size=2)
    for ts in (10, 30, 30):
        writer.add(make_visit(ts))

    stored = checkpoint_repo.get_by_source(SOURCE)
    assert stored is not None
    assert (stored.high_water_mark, stored.rows_at_mark) == (30, 1)

    writer.close()

    stored = checkpoint_repo.get_by_source(SOURCE)
    assert (stored.high_water_mark, stored.rows_at_mark) == (30, 2)
    assert writer.checkpoint == Checkpoint(30, 2)


def test_checkpoint_not_saved_when_batch_fails(
    visit_repo: VisitRepository,
    checkpoint_repo: IngestCheckpointRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    writer = BatchWriter(
        visit_repo,
        checkpoint_repo,
        source=SOURCE,
        checkpoint=Checkpoint(5, 1),
        batch_size=10,
    )

    def broken_save_mark(*args, **kwargs):
        raise OperationalError("UPDATE ingest_checkpoints", {}, Exception("database is locked"))

    monkeypatch.setattr(checkpoint_repo, "save_mark", broken_save_mark)
    writer.add(make_visit(7))

    with pytest.raises(BatchWriteError):
        writer.close()

    # The visits of the batch went with the checkpoint
    assert visit_repo.count() == 0
    assert writer.checkpoint == Checkpoint(5, 1)
