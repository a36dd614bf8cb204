"""
JSON run artifact.

``metadata`` holds run counts, ``networkEvents`` one record per parsed
event (with the capture it came from and its trigger), and
``clickEvents`` every click with the capture keys attributed to it.
This file is what ``compare`` reads back.
"""

from __future__ import annotations

import pathlib
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from ga4_audit.attribution import engine
from ga4_audit.config import TrackerConfig
from ga4_audit.models import actions, capture, run
from ga4_audit.parsing import payload
from ga4_audit.utils import logger, serialization
from ga4_audit.utils import url as url_mod

log = logger.create_logger("JSON-Report")


def report_basename(site_url: str, when: datetime | None = None) -> str:
    """File stem shared by every report of one run, e.g. ``www-example-com-2026-01-01T10-00-00``."""
    when = when or datetime.now(UTC)
    return f"{url_mod.hostname_slug(site_url)}-{when.strftime('%Y-%m-%dT%H-%M-%S')}"


def _network_records(
    captures: Sequence[capture.NetworkCapture],
    action_list: Sequence[actions.Action],
    config: TrackerConfig,
) -> list[run.NetworkEventRecord]:
    records: list[run.NetworkEventRecord] = []
    for index, net in enumerate(captures):
        trigger = engine.describe_trigger(engine.find_trigger(net, action_list))
        for event in payload.extract_events(net, config):
            records.append(
                run.NetworkEventRecord(
                    network_event_index=index,
                    timestamp=net.timestamp,
                    url=net.url,
                    method=net.method,
                    post_data=net.raw_body,
                    event_name=event.event_name,
                    event_category=event.event_category,
                    event_action=event.event_action,
                    event_label=event.event_label,
                    event_location=event.event_location,
                    link_classes=event.link_classes,
                    link_url=event.link_url,
                    link_domain=event.link_domain,
                    outbound=event.outbound,
                    source=event.encoding_source,
                    raw_data=event.raw_segment,
                    line=event.line_index,
                    trigger=trigger,
                )
            )
    return records


def _click_record(click: actions.Action) -> run.ClickEventRecord:
    return run.ClickEventRecord(
        id=click.id,
        timestamp=click.start_timestamp,
        element=click.element,
        success=click.success,
        error=click.failure_reason,
        matched_network_events=len(click.matched_captures),
        matched_captures=[run.CaptureRef(timestamp=c.timestamp, url=c.url) for c in click.matched_captures],
        is_dropdown_item=click.is_dropdown_item,
    )


def build_report(
    site_url: str,
    captures: Iterable[capture.NetworkCapture],
    action_list: Iterable[actions.Action],
    config: TrackerConfig,
    run_errors: Sequence[str] = (),
) -> run.RunReport:
    """Assemble the run artifact from a run's captures and actions."""
    captured = list(captures)
    recorded = list(action_list)
    records = _network_records(captured, recorded, config)
    clicks = [a for a in recorded if a.kind == "click"]
    scrolls = [a for a in recorded if a.kind == "scroll"]

    metadata = run.RunMetadata(
        url=site_url,
        timestamp=datetime.now(UTC).isoformat(),
        total_network_events=len(captured),
        total_extracted_events=len(records),
        total_clicks=len(clicks),
        successful_clicks=sum(1 for a in clicks if a.success),
        failed_clicks=sum(1 for a in clicks if not a.success),
        total_scrolls=len(scrolls),
        scrolls_with_events=sum(1 for a in scrolls if a.matched_events),
        total_form_actions=sum(1 for a in recorded if a.kind == "form"),
        errors=list(run_errors),
    )
    return run.RunReport(metadata=metadata, network_events=records, click_events=[_click_record(c) for c in clicks])


def write_json(path: pathlib.Path, report: run.RunReport) -> pathlib.Path:
    serialization.write_json_file(path, serialization.to_json_dict(report))
    log.success(
        "JSON report saved",
        {"path": str(path), "networkEvents": len(report.network_events), "clicks": len(report.click_events)},
    )
    return path
