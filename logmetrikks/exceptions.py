"""Exception types raised by the ingestion pipeline."""
from __future__ import annotations


class LogMetrikksError(Exception):
    """Base class for all LogMetrikks errors."""


class MalformedLineError(LogMetrikksError):
    """A log line does not match the access log schema.

    Never fatal: the pipeline turns it into a skipped line.
    """

    def __init__(self, line: str, reason: str) -> None:
        self.line = line
        self.reason = reason
        super().__init__(reason)


class SetupError(LogMetrikksError):
    """A run could not start. Raised before any line is processed."""


class StoreSetupError(SetupError):
    """Schema creation or pragma application failed."""


class LogSourceMissingError(SetupError):
    """The access log file to ingest does not exist."""


class BatchWriteError(LogMetrikksError):
    """A batch transaction was rejected and rolled back. No row of the batch was stored."""

    def __init__(self, message: str, rows: int) -> None:
        self.rows = rows
        super().__init__(message)


class IngestionBusyError(LogMetrikksError):
    """An ingestion run is already in progress."""
