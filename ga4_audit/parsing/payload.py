"""
GA4 payload parsing.

Decodes a request body or query string into one or more
:class:`ParsedEvent` records.  A single GA4 request can batch several
hits: either one per whitespace-separated line, or glued together so
that the event-name marker (``en=``) appears several times in one
string.  Each hit is decoded as a query string and every logical field
is resolved through the ordered alias table in the config.

Parsing never raises: malformed input is logged and yields no events.
"""

from __future__ import annotations

import re
import urllib.parse

from ga4_audit.config import TrackerConfig
from ga4_audit.models import capture
from ga4_audit.utils import errors, logger
from ga4_audit.utils import url as url_mod

log = logger.create_logger("Payload-Parser")


def _marker_pattern(marker: str) -> re.Pattern[str]:
    """Match *marker* only where it starts a key (not inside ``screen=``)."""
    return re.compile(r"(?<![^&?\s])" + re.escape(marker))


def split_segments(raw: str, marker: str) -> list[str]:
    """Split a raw payload into candidate hit segments.

    When every whitespace-separated segment carries the marker, each
    one is a hit.  Otherwise the payload is one blob which is sliced
    at each marker occurrence when there is more than one.
    """
    pattern = _marker_pattern(marker)
    segments = [s for s in raw.split() if s.strip()]
    if len(segments) > 1 and all(pattern.search(s) for s in segments):
        return segments

    blob = raw.strip()
    starts = [m.start() for m in pattern.finditer(blob)]
    if len(starts) < 2:
        return [blob] if blob else []

    slices: list[str] = []
    for i, start in enumerate(starts):
        end = starts[i + 1] if i + 1 < len(starts) else len(blob)
        piece = blob[start:end].strip().rstrip("&")
        if piece:
            slices.append(piece)
    return slices


def _decode_segment(segment: str) -> dict[str, str]:
    """Decode a ``key=value&key=value`` segment, keeping the first value per key."""
    try:
        decoded = urllib.parse.parse_qs(segment, keep_blank_values=True)
    except ValueError as exc:
        raise errors.PayloadParseError(f"Malformed query segment: {exc}") from exc
    return {key: values[0] for key, values in decoded.items() if values}


def lookup_first(params: dict[str, str], aliases: tuple[str, ...]) -> tuple[str, str | None]:
    """Return ``(value, alias)`` for the first alias present in *params*."""
    for alias in aliases:
        if alias in params:
            return params[alias].strip(), alias
    return "", None


def parse(
    raw_body: str,
    capture_timestamp: int,
    source_url: str,
    encoding_source: capture.EncodingSource,
    config: TrackerConfig,
) -> list[capture.ParsedEvent]:
    """Parse *raw_body* into zero or more events.

    Args:
        raw_body: Request body, or the query string of a GET hit.
        capture_timestamp: Epoch-ms timestamp of the originating capture.
        source_url: URL of the originating capture.
        encoding_source: ``"POST"`` for bodies, ``"URL"`` for query strings.
        config: Tracker configuration (marker key and alias table).

    Returns:
        Events in payload order.  Segments whose fields are all empty
        are dropped.
    """
    if not raw_body or not raw_body.strip():
        return []

    general = config.general
    events: list[capture.ParsedEvent] = []
    try:
        segments = split_segments(raw_body, general.event_name_marker)
        for line_index, segment in enumerate(segments, start=1):
            params = _decode_segment(segment)
            values: dict[str, str] = {}
            used: dict[str, str | None] = {}
            for field, aliases in general.event_param_aliases.items():
                values[field], used[field] = lookup_first(params, tuple(aliases))

            if not any(v for v in values.values()):
                continue

            events.append(
                capture.ParsedEvent(
                    source_capture_timestamp=capture_timestamp,
                    source_url=source_url,
                    raw_segment=segment,
                    line_index=line_index,
                    encoding_source=encoding_source,
                    raw_params=used,
                    **values,
                )
            )
    except errors.PayloadParseError as exc:
        log.warn("Could not parse analytics payload", {"url": source_url, "error": str(exc)})
        return []
    return events


def extract_events(net: capture.NetworkCapture, config: TrackerConfig) -> list[capture.ParsedEvent]:
    """Extract events from a capture: POST body first, then the URL query.

    The URL is only consulted for GA4 endpoints, and only when the
    body produced nothing.
    """
    events: list[capture.ParsedEvent] = []
    if net.raw_body:
        events = parse(net.raw_body, net.timestamp, net.url, "POST", config)

    if not events and url_mod.matches_endpoint(net.url, config.general.ga4_endpoints):
        events = parse(url_mod.query_part(net.url), net.timestamp, net.url, "URL", config)
    return events


def extract_all(captures: list[capture.NetworkCapture], config: TrackerConfig) -> list[capture.ParsedEvent]:
    """Expand every capture into its events, preserving capture order."""
    return [event for net in captures for event in extract_events(net, config)]
