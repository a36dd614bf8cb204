"""
Event classification predicates.

Pure functions over a single :class:`ParsedEvent` (or capture) plus
keyword lists from the config.  Classification is per event: one
capture that batches a scroll hit and a click hit yields one of each.
"""

from __future__ import annotations

from collections.abc import Iterable, Set
from typing import Literal

from ga4_audit.config import TrackerConfig
from ga4_audit.models import capture
from ga4_audit.parsing import payload
from ga4_audit.utils import url as url_mod

PAGEVIEW_ALIASES: tuple[str, ...] = ("page_view", "pageview", "page view")

EventFilter = Literal["scroll", "click", "pageview", "unmatched"]


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    lowered = text.lower()
    return any(k.lower() in lowered for k in keywords if k)


def is_scroll(event: capture.ParsedEvent, config: TrackerConfig) -> bool:
    """True when the event name or raw segment mentions a scroll keyword."""
    keywords = config.scroll.event_keywords
    return _contains_any(event.event_name, keywords) or _contains_any(event.raw_segment, keywords)


def is_pageview(event: capture.ParsedEvent) -> bool:
    """True for ``page_view`` hits (by name, or by mention in the raw segment)."""
    if event.event_name.strip().lower() in PAGEVIEW_ALIASES:
        return True
    return _contains_any(event.raw_segment, PAGEVIEW_ALIASES)


def is_excluded_from_click_attribution(event: capture.ParsedEvent, config: TrackerConfig) -> bool:
    """True when the event name contains a click-exclusion keyword.

    Only the parsed event name is inspected; an event without a name is
    never excluded.
    """
    if not event.event_name:
        return False
    return _contains_any(event.event_name, config.click.exclude_keywords)


def is_ga4_capture(net: capture.NetworkCapture, config: TrackerConfig) -> bool:
    return url_mod.matches_endpoint(net.url, config.general.ga4_endpoints)


def is_scroll_related_capture(net: capture.NetworkCapture, config: TrackerConfig) -> bool:
    """True for a GA4 capture carrying a scroll hit.

    Falls back to a keyword scan of the raw body when nothing parses.
    """
    if not is_ga4_capture(net, config):
        return False
    events = payload.extract_events(net, config)
    if events:
        keywords = config.scroll.event_keywords
        return any(
            _contains_any(e.event_name, keywords)
            or _contains_any(e.event_action, keywords)
            or _contains_any(e.event_label, keywords)
            for e in events
        )
    return _contains_any(net.raw_body or "", config.scroll.event_keywords)


def filter_events_by_type(
    events: Iterable[capture.ParsedEvent],
    kind: EventFilter,
    claimed: Set[capture.CaptureKey],
    config: TrackerConfig,
) -> list[capture.ParsedEvent]:
    """Select events for one report section.

    Args:
        events: Parsed events to filter.
        kind: Section to select.
        claimed: Capture keys attributed to successful clicks.
        config: Tracker configuration (scroll keywords).

    Returns:
        ``scroll`` and ``pageview`` select by classification.
        ``click`` selects click-attributed events that are neither
        scrolls nor pageviews; ``unmatched`` selects the remainder.
    """
    selected: list[capture.ParsedEvent] = []
    for event in events:
        scroll = is_scroll(event, config)
        pageview = is_pageview(event)
        match kind:
            case "scroll":
                keep = scroll
            case "pageview":
                keep = pageview
            case "click":
                keep = event.capture_key in claimed and not scroll and not pageview
            case "unmatched":
                keep = event.capture_key not in claimed and not scroll and not pageview
        if keep:
            selected.append(event)
    return selected
