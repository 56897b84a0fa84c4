"""Schemas for enriched visit data - pure data, no ORM dependencies."""
from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any


class DeviceType(str, Enum):
    """Coarse device category of a client."""

    MOBILE = "mobile"
    TABLET = "tablet"
    DESKTOP = "desktop"
    # Never produced by classify_device; kept so stored data and consumers can rely on the full set.
    LAPTOP = "laptop"


@dataclass
class UserAgentInfo:
    """Identity fields resolved from a user-agent string."""

    device_family: str = "Other"
    browser: str = "Other"
    browser_major_version: str = ""
    browser_minor_version: str = ""
    os: str = "Other"
    os_major_version: str = ""
    os_minor_version: str = ""


@dataclass
class UrlParts:
    """Decomposed request URL plus the referer host."""

    protocol: str = ""
    pathname: str = ""
    host: str = ""
    referer_host: str = ""


@dataclass
class EnrichedVisit:
    """A fully enriched access log record, ready to be stored as a row of `visits`."""

    iso_date: str
    epoch_ts: int
    day: str
    hour: str
    ip: str
    url: str
    device_type: DeviceType
    protocol: str = ""
    pathname: str = ""
    host: str = ""
    device_family: str = "Other"
    browser: str = "Other"
    browser_major_version: str = ""
    browser_minor_version: str = ""
    os: str = "Other"
    os_major_version: str = ""
    os_minor_version: str = ""
    country_code: str = ""
    referer_host: str = ""

    def to_row(self) -> dict[str, Any]:
        """Column values for the visits table."""
        row = asdict(self)
        row["device_type"] = self.device_type.value
        return row
