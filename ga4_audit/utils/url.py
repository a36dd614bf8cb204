"""
URL helpers for endpoint filtering and report file naming.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from urllib import parse


def extract_domain(url: str) -> str:
    """Extract the hostname from a URL string."""
    try:
        parsed = parse.urlparse(url)
        return parsed.hostname or "unknown"
    except Exception:
        return "unknown"


def matches_endpoint(url: str, endpoints: Iterable[str]) -> bool:
    """Return True when *url* contains any of the configured endpoint prefixes."""
    return any(endpoint and endpoint in url for endpoint in endpoints)


def query_part(url: str) -> str:
    """Return the raw query string of *url*, or ``""`` when it has none.

    Strings that are not URLs but already look like a query
    (``en=click&ep.x=1``) are returned unchanged.
    """
    if "://" not in url:
        return url.removeprefix("?")
    try:
        return parse.urlsplit(url).query
    except ValueError:
        return ""


def hostname_slug(url: str) -> str:
    """Return the hostname of *url* with dots replaced, for file names.

    ``https://www.example.co.uk/x`` becomes ``www-example-co-uk``.
    """
    host = extract_domain(url)
    if host == "unknown":
        host = re.sub(r"[^a-zA-Z0-9]", "_", url)[:60] or "unknown"
    return host.replace(".", "-")
