"""Request URL and referer decomposition."""
from __future__ import annotations

import logging
from urllib.parse import urlsplit

from .schemas import UrlParts

logger = logging.getLogger(__name__)


def referer_hostname(referer: str) -> str:
    """Hostname of a referer URL, or an empty string for '-', relative or malformed referers."""
    if not referer or referer == "-":
        return ""
    try:
        return urlsplit(referer).hostname or ""
    except ValueError as e:
        logger.debug("Could not parse referer %r: %s", referer, e)
        return ""


def decompose_url(url: str, referer: str = "") -> UrlParts:
    """Split the request URL into protocol, host and pathname and extract the referer host.

    The request URL is usually origin-relative ('/index.html'), in which case
    protocol and host stay empty. Protocol keeps its trailing colon ('https:').
    """
    parts = UrlParts(referer_host=referer_hostname(referer))
    if not url:
        return parts

    try:
        split = urlsplit(url)
    except ValueError as e:
        logger.debug("Could not parse request url %r: %s", url, e)
        parts.pathname = url
        return parts

    parts.protocol = f"{split.scheme}:" if split.scheme else ""
    # netloc without credentials, port kept
    parts.host = split.netloc.rpartition("@")[2]
    parts.pathname = split.path or ("/" if split.netloc else "")
    return parts
