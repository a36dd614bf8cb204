"""
Per-click CSV report.

One row per successful click, in click order, describing the element
and the first analytics event attributed to it.  The column set is
fixed; the ARD comparator reads this file back by header name.
"""

from __future__ import annotations

import csv
import pathlib
from collections.abc import Iterable
from datetime import datetime

from ga4_audit.models import actions
from ga4_audit.utils import logger

log = logger.create_logger("CSV-Report")

COLUMNS: tuple[str, ...] = (
    "Click Order",
    "Element Type",
    "Element Text",
    "Element Href",
    "Element Selector",
    "Click Time",
    "Status",
    "GA4 Event Count",
    "Primary GA4 Event Name",
    "Primary GA4 Event Category",
    "Primary GA4 Event Action",
    "Primary GA4 Event Label",
    "Time After Click (ms)",
    "Network URL",
    "Full Site URL",
)


def _clock(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%H:%M:%S")


def build_rows(action_list: Iterable[actions.Action], site_url: str = "") -> list[dict[str, str | int]]:
    """Build CSV rows for the successful clicks in *action_list*."""
    clicks = sorted(
        (a for a in action_list if a.kind == "click" and a.success),
        key=lambda a: (a.start_timestamp, a.id),
    )
    rows: list[dict[str, str | int]] = []
    for order, click in enumerate(clicks, start=1):
        element = click.element or actions.ElementDescriptor()
        primary = click.matched_events[0] if click.matched_events else None
        rows.append(
            {
                "Click Order": order,
                "Element Type": element.tag_name,
                "Element Text": element.text_content.strip(),
                "Element Href": element.href,
                "Element Selector": element.selector,
                "Click Time": _clock(click.start_timestamp),
                "Status": "TRIGGERED GA4" if primary else "NO GA4",
                "GA4 Event Count": len(click.matched_events),
                "Primary GA4 Event Name": primary.event_name if primary else "",
                "Primary GA4 Event Category": primary.event_category if primary else "",
                "Primary GA4 Event Action": primary.event_action if primary else "",
                "Primary GA4 Event Label": primary.event_label if primary else "",
                "Time After Click (ms)": (primary.source_capture_timestamp - click.start_timestamp) if primary else "",
                "Network URL": primary.source_url if primary else "",
                "Full Site URL": site_url,
            }
        )
    return rows


def write_csv(path: pathlib.Path, action_list: Iterable[actions.Action], site_url: str = "") -> pathlib.Path:
    """Write the per-click CSV to *path* and return it."""
    rows = build_rows(action_list, site_url)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(COLUMNS))
        writer.writeheader()
        writer.writerows(rows)
    log.success(f"CSV report saved ({len(rows)} clicks)", {"path": str(path)})
    return path
