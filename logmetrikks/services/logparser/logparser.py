from collections.abc import Iterator
import os
import time
import logging
from functools import wraps
from datetime import datetime, timezone
from pathlib import Path
from typing import ParamSpec, Callable

from logmetrikks.exceptions import MalformedLineError
from .constants import log_pattern, TIME_LOCAL_FORMAT
from .schemas import ParsedRecord


logger = logging.getLogger(__name__)

P = ParamSpec("P")


def wait(timeout_seconds: int = 60) -> Callable[[Callable[P, bool]], Callable[P, bool]]:
    """Factory Decorator to wait for a function to return True for a given amount of time.

    Args:
        timeout_seconds (int, optional): Defaults to 60.
    """
    def decorator(func: Callable[P, bool]) -> Callable[P, bool]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> bool:
            # Allow tests to bypass retry loops
            if os.getenv("DISABLE_WAIT", "false").lower() == "true":
                return bool(func(*args, **kwargs))
            timeout: float = time.time() + timeout_seconds
            while time.time() < timeout:
                if func(*args, **kwargs):
                    return True
                time.sleep(1)
            logger.error(f"Timeout of {timeout_seconds} seconds reached on {func.__name__} function.")
            return False
        return wrapper
    return decorator


class LineSource:
    """Lazy, forward-only reader over the lines of a log file.

    Each iteration reopens the file from the start. Lines are yielded without
    their line terminator; content is never interpreted here.
    """

    def __init__(self, log_path: Path | str, encoding: str = "utf-8") -> None:
        self.log_path = Path(log_path)
        self.encoding = encoding

    @wait(timeout_seconds=10)
    def exists(self) -> bool:
        """Try for 10 seconds to check if the log file exists."""
        logger.debug("Checking if log file %s exists.", self.log_path)
        if not self.log_path.is_file():
            logger.warning("Log file %s does not exist.", self.log_path)
            return False
        return True

    def __iter__(self) -> Iterator[str]:
        # errors="replace" so binary garbage becomes a malformed line instead of a decode error
        with open(self.log_path, "r", encoding=self.encoding, errors="replace") as file:
            for line in file:
                yield line.rstrip("\r\n")


class LogParser:
    """Parses nginx access log lines into ParsedRecord objects.

    The line layout is fixed by LOG_SCHEMA. A line that does not match raises
    MalformedLineError; callers decide whether that is fatal (the ingestion
    pipeline never treats it as such).
    """

    def __init__(self) -> None:
        self.pattern = log_pattern()

        # Statistics
        self.parsed_lines: int = 0
        self.skipped_lines: int = 0

    def parsed_lines_count(self) -> int:
        """Return the number of parsed lines."""
        return self.parsed_lines

    def skipped_lines_count(self) -> int:
        """Return the number of skipped lines."""
        return self.skipped_lines

    @staticmethod
    def parse_request(request: str) -> tuple[str, str, str]:
        """Split 'GET /path HTTP/1.1' into method, url and protocol.

        Missing parts come back as empty strings.
        """
        parts = request.split(" ")
        parts += [""] * (3 - len(parts))
        return parts[0], parts[1], parts[2]

    @staticmethod
    def parse_time_local(time_local: str) -> datetime:
        """Convert nginx $time_local ('10/Oct/2023:13:55:36 +0000') to an aware datetime.

        The colon between date and time is not understood by strptime-style
        formats, so it is replaced by a space first.
        """
        parsed = datetime.strptime(time_local.replace(":", " ", 1), TIME_LOCAL_FORMAT)
        # Raises OverflowError for local times whose UTC form falls outside year 1..9999
        parsed.astimezone(timezone.utc)
        return parsed

    def parse_line(self, line: str) -> ParsedRecord:
        """Parse a single log line.

        Raises:
            MalformedLineError: The line does not follow the schema or has an invalid timestamp.
        """
        matched = self.pattern.fullmatch(line)
        if not matched:
            self.skipped_lines += 1
            raise MalformedLineError(line, "Line did not match expected log format")

        datadict = matched.groupdict()
        try:
            timestamp = self.parse_time_local(datadict["time_local"])
        except (ValueError, OverflowError) as e:
            self.skipped_lines += 1
            raise MalformedLineError(line, f"Invalid time_local {datadict['time_local']!r}: {e}") from e

        method, url, http_protocol = self.parse_request(datadict["request"])
        self.parsed_lines += 1

        return ParsedRecord(
            remote_addr=datadict["remote_addr"],
            remote_user=datadict["remote_user"],
            time_local=datadict["time_local"],
            request=datadict["request"],
            status=datadict["status"],
            bytes_sent=datadict["bytes_sent"],
            http_referer=datadict["http_referer"],
            http_user_agent=datadict["http_user_agent"],
            method=method,
            url=url,
            http_protocol=http_protocol,
            timestamp=timestamp,
        )
