from sqlalchemy import inspect, select, text

import pytest

from logmetrikks.db.store import Store
from logmetrikks.domain import Visit
from logmetrikks.exceptions import StoreSetupError


def _visit(epoch_ts: int = 1) -> Visit:
    return Visit(
        iso_date="2023-10-10T13:55:36.000Z",
        epoch_ts=epoch_ts,
        day="2023-10-10",
        hour="2023-10-10T13:00:00.000Z",
        ip="203.0.113.5",
        url="/",
        protocol="",
        pathname="/",
        host="",
        device_type="desktop",
        device_family="Other",
        browser="Other",
        browser_major_version="",
        browser_minor_version="",
        os="Other",
        os_major_version="",
        os_minor_version="",
        country_code="",
        referer_host="",
    )


def test_setup_creates_tables(store: Store) -> None:
    tables = set(inspect(store.engine).get_table_names())
    assert {"visits", "ingest_checkpoints"} <= tables


def test_setup_applies_pragmas(store: Store) -> None:
    with store.engine.connect() as conn:
        assert conn.execute(text("PRAGMA journal_mode")).scalar() == "delete"
        assert conn.execute(text("PRAGMA page_size")).scalar() == 1024


def test_setup_is_idempotent_without_reset(store: Store) -> None:
    with store.session() as session:
        session.add(_visit())
        session.commit()

    store.setup()

    with store.session() as session:
        assert len(session.scalars(select(Visit)).all()) == 1


def test_setup_with_reset_drops_rows(store: Store) -> None:
    with store.session() as session:
        session.add(_visit())
        session.commit()

    store.setup(reset=True)

    with store.session() as session:
        assert session.scalars(select(Visit)).all() == []


def test_unsupported_journal_mode(tmp_path) -> None:
    with pytest.raises(ValueError, match="journal_mode"):
        Store(f"sqlite:///{tmp_path / 'x.sqlite3'}", journal_mode="sometimes")


def test_setup_failure_raises_store_setup_error(tmp_path) -> None:
    store = Store(f"sqlite:///{tmp_path / 'missing-dir' / 'x.sqlite3'}")
    with pytest.raises(StoreSetupError):
        store.setup()
    store.dispose()
