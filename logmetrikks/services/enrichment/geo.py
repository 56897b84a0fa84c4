"""Country resolution for client addresses.

GeoCache memoizes address -> country code for the lifetime of one ingestion
run. GeoResolver consults it before touching the GeoIP database, so every
distinct address is looked up at most once per run, including addresses the
database does not know.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

from geoip2.database import Reader
from IPy import IP

from logmetrikks.services.logparser.constants import ALLOWED_GEOIP_LOCALES, GEOIP_LOCALES_DEFAULT

logger = logging.getLogger(__name__)


def create_reader(path: Path | str, locales: list[str] | None = None) -> Reader | None:
    """Create a GeoIP2 Reader instance."""
    if any(loc not in ALLOWED_GEOIP_LOCALES for loc in locales or []):
        logger.warning(
            "Unmatched GeoIp2 locale found. Allowed are '%s', defaulting to 'en'",
            ALLOWED_GEOIP_LOCALES,
        )
        locales = GEOIP_LOCALES_DEFAULT
    try:
        return Reader(path, locales=locales)
    except Exception:
        logger.exception("Failed to create GeoIP2 Reader for path: %s", path)
        return None


def is_valid_ip(ip: str) -> bool:
    """Return True if ip parses as an IPv4 or IPv6 address."""
    if not isinstance(ip, str) or not ip:  # pyright: ignore[reportUnnecessaryIsInstance]
        return False
    try:
        IP(ip)
    except ValueError:
        return False
    return True


def anonymize_ip(ip: str) -> str:
    """Truncate an address to its /24 (IPv4) or /48 (IPv6) network.

    Invalid addresses and networks are returned unchanged.
    """
    try:
        address = IP(ip)
    except ValueError:
        return ip
    prefix = 24 if address.version() == 4 else 48
    try:
        return str(IP(f"{ip}/{prefix}", make_net=True).net())
    except ValueError:
        # Already a network ('10.0.0.0/8') or a range
        return ip


class GeoCache:
    """Unbounded address -> country code memo for one run."""

    def __init__(self) -> None:
        self._countries: dict[str, str] = {}
        self.hits: int = 0
        self.misses: int = 0

    def __len__(self) -> int:
        return len(self._countries)

    def __contains__(self, ip: object) -> bool:
        return ip in self._countries

    def get_or_resolve(self, ip: str, resolve: Callable[[str], str]) -> str:
        """Return the cached country for ip, resolving and storing it on a miss."""
        if ip in self._countries:
            self.hits += 1
            return self._countries[ip]
        self.misses += 1
        country_code = self._countries[ip] = resolve(ip)
        return country_code


class GeoResolver:
    """Resolves client addresses to ISO country codes through a GeoIP2 database.

    Works with both Country and City databases. Without a reader every address
    resolves to an empty country code.
    """

    def __init__(self, reader: Reader | Any | None, cache: GeoCache | None = None) -> None:
        self.reader = reader
        self.cache = cache if cache is not None else GeoCache()
        self.lookups: int = 0
        self._lookup: Callable[[str], Any] | None = None

        if reader is not None:
            database_type: str = reader.metadata().database_type
            self._lookup = reader.city if "City" in database_type else reader.country
            logger.debug("GeoIP database type: %s", database_type)

    def country_code(self, ip: str) -> str:
        """Country code for ip, or an empty string when unknown."""
        return self.cache.get_or_resolve(ip, self._lookup_country)

    def _lookup_country(self, ip: str) -> str:
        if self._lookup is None or not is_valid_ip(ip):
            return ""
        self.lookups += 1
        try:
            ip_data = self._lookup(ip)
        except Exception as e:
            logger.debug("GeoIP lookup failed for %s: %s", ip, e)
            return ""
        return ip_data.country.iso_code or ""
