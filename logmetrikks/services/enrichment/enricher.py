from __future__ import annotations

import logging
from datetime import timezone

from logmetrikks.services.logparser.schemas import ParsedRecord
from .geo import GeoResolver, anonymize_ip
from .schemas import EnrichedVisit
from .urls import decompose_url
from .useragent import classify_device, resolve_user_agent

logger = logging.getLogger(__name__)


def iso_timestamp(record: ParsedRecord) -> str:
    """UTC timestamp formatted as 2023-10-10T13:55:36.000Z."""
    utc = record.timestamp.astimezone(timezone.utc)
    return f"{utc:%Y-%m-%dT%H:%M:%S}.{utc.microsecond // 1000:03d}Z"


class Enricher:
    """Derives the analytic fields of a visit from a parsed log record.

    The sub-steps (device, user agent, URL, country) are independent and each
    one degrades to default values on failure, so enrich() always returns a
    complete visit for a valid record.
    """

    def __init__(self, geo_resolver: GeoResolver, *, anonymize: bool = False) -> None:
        self.geo_resolver = geo_resolver
        self.anonymize = anonymize

    def enrich(self, record: ParsedRecord) -> EnrichedVisit:
        iso_date = iso_timestamp(record)
        ip = anonymize_ip(record.remote_addr) if self.anonymize else record.remote_addr

        ua_info = resolve_user_agent(record.http_user_agent)
        url_parts = decompose_url(record.url, record.http_referer)

        return EnrichedVisit(
            iso_date=iso_date,
            epoch_ts=record.epoch_ts,
            day=iso_date[:10],
            hour=iso_date[:14] + "00:00.000Z",
            ip=ip,
            url=record.url,
            protocol=url_parts.protocol,
            pathname=url_parts.pathname,
            host=url_parts.host,
            device_type=classify_device(record.http_user_agent),
            device_family=ua_info.device_family,
            browser=ua_info.browser,
            browser_major_version=ua_info.browser_major_version,
            browser_minor_version=ua_info.browser_minor_version,
            os=ua_info.os,
            os_major_version=ua_info.os_major_version,
            os_minor_version=ua_info.os_minor_version,
            country_code=self.geo_resolver.country_code(ip),
            referer_host=url_parts.referer_host,
        )
