"""Destination store: engine, schema lifecycle and SQLite pragmas."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import Engine, Table, create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from logmetrikks.domain.visits.models import IngestCheckpoint, Visit
from logmetrikks.exceptions import StoreSetupError

if TYPE_CHECKING:
    from logmetrikks.config.settings import DatabaseSettings

logger = logging.getLogger(__name__)

TABLES: list[Table] = [Visit.__table__, IngestCheckpoint.__table__]  # type: ignore[list-item]

JOURNAL_MODES = frozenset({"delete", "truncate", "persist", "memory", "wal", "off"})


class Store:
    """Owns the database engine and the visits/checkpoint schema.

    Example:
        store = Store("sqlite:///nginx.sqlite3")
        store.setup(reset=True)
        with store.session() as session:
            ...
    """

    def __init__(
        self,
        url: str,
        *,
        echo: bool = False,
        journal_mode: str = "delete",
        page_size: int = 1024,
        vacuum: bool = True,
    ) -> None:
        if journal_mode.lower() not in JOURNAL_MODES:
            raise ValueError(f"Unsupported journal_mode {journal_mode!r}, expected one of {sorted(JOURNAL_MODES)}")
        self.url = url
        self.journal_mode = journal_mode
        self.page_size = page_size
        self.vacuum = vacuum
        self.engine: Engine = create_engine(url, echo=echo)
        self._session_maker = sessionmaker(bind=self.engine, expire_on_commit=False)

    @classmethod
    def from_settings(cls, settings: "DatabaseSettings") -> "Store":
        return cls(
            settings.url,
            echo=settings.echo,
            journal_mode=settings.journal_mode,
            page_size=settings.page_size,
            vacuum=settings.vacuum,
        )

    @property
    def is_sqlite(self) -> bool:
        return self.engine.dialect.name == "sqlite"

    def setup(self, *, reset: bool = False) -> None:
        """Create the schema, optionally dropping it first, and apply pragmas.

        Raises:
            StoreSetupError: Any database error during setup.
        """
        try:
            if reset:
                logger.warning("Dropping previous visits and checkpoint tables")
                with self.engine.begin() as conn:
                    Visit.metadata.drop_all(conn, tables=TABLES)
            if self.is_sqlite:
                self._apply_pragmas()
            with self.engine.begin() as conn:
                Visit.metadata.create_all(conn, tables=TABLES)
            if self.is_sqlite and self.vacuum:
                self._vacuum()
        except SQLAlchemyError as e:
            logger.exception("Store setup failed for %s", self.engine.url)
            raise StoreSetupError(f"Store setup failed: {e}") from e
        logger.info("Store ready at %s", self.engine.url)

    def _apply_pragmas(self) -> None:
        # page_size only takes effect on an empty database or through the VACUUM that follows
        with self.engine.connect().execution_options(isolation_level="AUTOCOMMIT") as conn:
            conn.execute(text(f"PRAGMA journal_mode = {self.journal_mode}"))
            conn.execute(text(f"PRAGMA page_size = {int(self.page_size)}"))
        logger.debug("Applied SQLite pragmas journal_mode=%s page_size=%d", self.journal_mode, self.page_size)

    def _vacuum(self) -> None:
        with self.engine.connect().execution_options(isolation_level="AUTOCOMMIT") as conn:
            conn.execute(text("VACUUM"))

    def session(self) -> Session:
        """New session bound to the store engine."""
        return self._session_maker()

    def dispose(self) -> None:
        self.engine.dispose()
