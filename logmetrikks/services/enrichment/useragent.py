"""User-agent based enrichment: device classification and browser/OS identity."""
from __future__ import annotations

import logging
from functools import lru_cache

from user_agents import parse as ua_parse
from user_agents.parsers import UserAgent

from .schemas import DeviceType, UserAgentInfo

logger = logging.getLogger(__name__)


@lru_cache(maxsize=10_000)
def parse_user_agent(user_agent: str) -> UserAgent:
    """Parse a user-agent string with the ua-parser grammar (cached, UA strings repeat a lot)."""
    return ua_parse(user_agent)


def device_type_from_flags(is_mobile: bool, is_tablet: bool) -> DeviceType:
    """Map the mobile/tablet heuristics to a device type.

    Order matters: some agents set both flags, and mobile wins over tablet.
    Desktop is the fallback when neither is set.
    """
    if not (is_mobile or is_tablet):
        return DeviceType.DESKTOP
    if is_mobile:
        return DeviceType.MOBILE
    return DeviceType.TABLET


def classify_device(user_agent: str) -> DeviceType:
    """Classify a user-agent string as mobile, tablet or desktop."""
    try:
        ua = parse_user_agent(user_agent or "")
        return device_type_from_flags(bool(ua.is_mobile), bool(ua.is_tablet))
    except Exception as e:
        logger.debug("Device classification failed for %r: %s", user_agent, e)
        return DeviceType.DESKTOP


def _version_part(version: tuple, index: int) -> str:
    if len(version) > index and version[index] != "":
        return str(version[index])
    return ""


def resolve_user_agent(user_agent: str) -> UserAgentInfo:
    """Resolve browser, OS and device family from a user-agent string.

    Unknown agents resolve to family "Other" with empty versions.
    """
    try:
        ua = parse_user_agent(user_agent or "")
    except Exception as e:
        logger.debug("User-agent resolution failed for %r: %s", user_agent, e)
        return UserAgentInfo()

    return UserAgentInfo(
        device_family=ua.device.family or "Other",
        browser=ua.browser.family or "Other",
        browser_major_version=_version_part(ua.browser.version, 0),
        browser_minor_version=_version_part(ua.browser.version, 1),
        os=ua.os.family or "Other",
        os_major_version=_version_part(ua.os.version, 0),
        os_minor_version=_version_part(ua.os.version, 1),
    )
