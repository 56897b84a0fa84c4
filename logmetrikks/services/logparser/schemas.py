"""Schemas for parsed log data - pure data, no ORM dependencies."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ParsedRecord:
    """One access log line split into its schema fields.

    String fields hold the exact captured substrings. The request line is
    additionally split into method/url/http_protocol and the local time is
    converted to an aware datetime.
    """

    remote_addr: str
    remote_user: str
    time_local: str
    request: str
    status: str
    bytes_sent: str
    http_referer: str
    http_user_agent: str
    method: str
    url: str
    http_protocol: str
    timestamp: datetime

    @property
    def epoch_ts(self) -> int:
        """Milliseconds since the Unix epoch."""
        return int(self.timestamp.timestamp() * 1000)
