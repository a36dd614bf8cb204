"""
Readers for ARD documents and previously produced run results.

ARD files in the wild use inconsistent column names, so every logical
field is resolved through an ordered list of header variants; the first
non-empty value wins.  Observed events can be read back either from
the per-click CSV or from the JSON run artifact.
"""

from __future__ import annotations

import csv
import json
import pathlib

import pydantic

from ga4_audit.attribution import engine
from ga4_audit.models import actions, ard, run
from ga4_audit.utils import errors, logger

log = logger.create_logger("ARD-Reader")

# ============================================================================
# Header aliases
# ============================================================================

ARD_HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("Event name", "Name", "Event Name", "event_name", "eventName"),
    "event_category": ("event_category", "Event Category", "eventCategory"),
    "event_action": ("event_action", "Event Action", "eventAction"),
    "event_label": ("event_label", "Event Label", "eventLabel"),
    "link_url": ("Link URL", "link_url"),
    "file_name": ("File Name", "file_name"),
    "trigger": ("Trigger", "trigger"),
}

OBSERVED_HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "event_name": ("Event name", "Primary GA4 Event Name", "Event Name", "event_name"),
    "event_category": ("Primary GA4 Event Category", "Event Category", "event_category"),
    "event_action": ("Primary GA4 Event Action", "Event Action", "event_action"),
    "event_label": ("Primary GA4 Event Label", "Event Label", "event_label"),
    "link_url": ("Link URL", "link_url"),
    "file_name": ("File Name", "file_name"),
    "network_url": ("Network URL", "network_url"),
    "trigger": ("Trigger Type", "Trigger Action", "trigger"),
}


def first_value(row: dict[str, str], aliases: tuple[str, ...]) -> str:
    """Return the first non-empty value among *aliases* in *row*."""
    for alias in aliases:
        value = (row.get(alias) or "").strip()
        if value:
            return value
    return ""


# ============================================================================
# CSV loading
# ============================================================================


def _read_csv_rows(path: pathlib.Path, kind: str) -> list[dict[str, str]]:
    if not path.is_file():
        raise errors.ConfigurationError(f"{kind} file not found: {path}")
    try:
        with open(path, encoding="utf-8-sig", newline="") as f:
            reader = csv.DictReader(f)
            if reader.fieldnames is None:
                return []
            reader.fieldnames = [h.strip() for h in reader.fieldnames]
            rows = []
            for raw in reader:
                row = {k: (v or "") for k, v in raw.items() if k is not None}
                if any(v.strip() for v in row.values()):
                    rows.append(row)
            return rows
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise errors.ConfigurationError(f"Could not read {kind} file {path}: {exc}") from exc


def load_ard(path: str | pathlib.Path) -> list[ard.ExpectedEventSpec]:
    """Load an ARD CSV into expected-event rows, preserving row order.

    Raises:
        ConfigurationError: If the file is missing or unreadable.
    """
    path = pathlib.Path(path)
    rows = _read_csv_rows(path, "ARD")
    specs = [
        ard.ExpectedEventSpec(
            index=idx,
            raw_fields=row,
            **{field: first_value(row, aliases) for field, aliases in ARD_HEADER_ALIASES.items()},
        )
        for idx, row in enumerate(rows)
    ]
    log.info(f"Loaded {len(specs)} ARD entries", {"path": str(path)})
    return specs


def _trigger_from_row(row: dict[str, str]) -> str:
    """Rebuild a click trigger string from the per-click CSV columns."""
    explicit = first_value(row, OBSERVED_HEADER_ALIASES["trigger"])
    if explicit:
        return explicit
    tag = first_value(row, ("Element Type",))
    if not tag:
        return ""
    return engine.describe_trigger(
        actions.Action(
            id=0,
            kind="click",
            start_timestamp=0,
            success=True,
            element=actions.ElementDescriptor(
                tag_name=tag,
                text_content=first_value(row, ("Element Text",)),
                selector=first_value(row, ("Element Selector",)),
            ),
        )
    )


def load_observed_csv(path: str | pathlib.Path) -> list[ard.ObservedEvent]:
    """Load observed events from a per-click results CSV."""
    path = pathlib.Path(path)
    # Clicks that fired nothing carry no event to compare.
    rows = [r for r in _read_csv_rows(path, "Results") if first_value(r, ("Status",)).upper() != "NO GA4"]
    observed = [
        ard.ObservedEvent(
            event_name=first_value(row, OBSERVED_HEADER_ALIASES["event_name"]),
            event_category=first_value(row, OBSERVED_HEADER_ALIASES["event_category"]),
            event_action=first_value(row, OBSERVED_HEADER_ALIASES["event_action"]),
            event_label=first_value(row, OBSERVED_HEADER_ALIASES["event_label"]),
            link_url=first_value(row, OBSERVED_HEADER_ALIASES["link_url"]),
            file_name=first_value(row, OBSERVED_HEADER_ALIASES["file_name"]),
            network_url=first_value(row, OBSERVED_HEADER_ALIASES["network_url"]),
            trigger=_trigger_from_row(row),
            raw_fields=row,
        )
        for row in rows
    ]
    log.info(f"Loaded {len(observed)} observed events from CSV", {"path": str(path)})
    return observed


def site_url_from_csv(path: str | pathlib.Path) -> str:
    """Return the ``Full Site URL`` of the first results row, if any."""
    rows = _read_csv_rows(pathlib.Path(path), "Results")
    return first_value(rows[0], ("Full Site URL",)) if rows else ""


# ============================================================================
# JSON artifact loading
# ============================================================================


def load_run_report(path: str | pathlib.Path) -> run.RunReport:
    """Load and validate a JSON run artifact.

    Raises:
        ConfigurationError: If the file is missing, not JSON, or not
            shaped like a run artifact.
    """
    path = pathlib.Path(path)
    if not path.is_file():
        raise errors.ConfigurationError(f"Results file not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            return run.RunReport.model_validate(json.load(f))
    except json.JSONDecodeError as exc:
        raise errors.ConfigurationError(f"Invalid JSON in {path}: {exc.msg}") from exc
    except pydantic.ValidationError as exc:
        raise errors.ConfigurationError(f"Malformed run artifact {path}: {exc}") from exc


def _click_triggers(report: run.RunReport) -> dict[tuple[int, str], str]:
    """Map each click-attributed capture key to its trigger string."""
    triggers: dict[tuple[int, str], str] = {}
    for click in report.click_events:
        if not click.success:
            continue
        description = engine.describe_trigger(
            actions.Action(
                id=click.id, kind="click", start_timestamp=click.timestamp, success=True, element=click.element
            )
        )
        for ref in click.matched_captures:
            triggers.setdefault((ref.timestamp, ref.url), description)
    return triggers


def load_observed_json(path: str | pathlib.Path) -> list[ard.ObservedEvent]:
    """Load observed events from a JSON run artifact.

    Trigger strings are recomputed from ``clickEvents``; events not
    attributed to a click keep whatever trigger the artifact stored.
    """
    report = load_run_report(path)
    triggers = _click_triggers(report)
    observed = [
        ard.ObservedEvent(
            event_name=record.event_name,
            event_category=record.event_category,
            event_action=record.event_action,
            event_label=record.event_label,
            link_url=record.link_url,
            timestamp=record.timestamp,
            network_url=record.url,
            trigger=triggers.get((record.timestamp, record.url), record.trigger),
        )
        for record in report.network_events
    ]
    log.info(f"Loaded {len(observed)} observed events from JSON", {"path": str(path)})
    return observed


def load_observed(path: str | pathlib.Path) -> list[ard.ObservedEvent]:
    """Load observed events from a ``.json`` artifact or a results CSV."""
    path = pathlib.Path(path)
    if path.suffix.lower() == ".json":
        return load_observed_json(path)
    return load_observed_csv(path)


def site_url_from_results(path: str | pathlib.Path) -> str:
    """Return the site URL recorded in a results CSV or JSON artifact."""
    path = pathlib.Path(path)
    if path.suffix.lower() == ".json":
        return load_run_report(path).metadata.url
    return site_url_from_csv(path)
