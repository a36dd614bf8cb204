"""Tests for the CSV, JSON and comparison report writers."""

from __future__ import annotations

import csv
import json
from datetime import datetime

from fakes import GA4_URL, START_MS, make_capture, make_click

from ga4_audit.comparison import comparator
from ga4_audit.models import actions, ard
from ga4_audit.parsing import payload
from ga4_audit.reporting import comparison_report, csv_report, json_report

SITE = "https://www.example.com/"


def _attributed_click(config, action_id: int, start: int, body: str, delay: int = 300, **kwargs) -> actions.Action:
    hit = make_capture(start + delay, body)
    click = make_click(action_id, start, **kwargs)
    click.matched_captures = [hit]
    click.matched_events = payload.extract_events(hit, config)
    return click


# ── csv_report ──────────────────────────────────────────────────


class TestCsvReport:
    """Tests for build_rows() and write_csv()."""

    def test_rows_for_successful_clicks_in_order(self, config) -> None:
        second = _attributed_click(config, 2, START_MS + 9000, "en=cta&ep.event_action=Click\nen=click", text="Buy")
        first = make_click(1, START_MS)
        failed = make_click(3, START_MS + 20_000, success=False)

        rows = csv_report.build_rows([second, failed, first], SITE)

        assert [r["Click Order"] for r in rows] == [1, 2]
        assert rows[0]["Status"] == "NO GA4"
        assert rows[0]["GA4 Event Count"] == 0
        assert rows[0]["Time After Click (ms)"] == ""
        assert rows[1]["Status"] == "TRIGGERED GA4"
        assert rows[1]["Element Text"] == "Buy"
        assert rows[1]["GA4 Event Count"] == 2
        assert rows[1]["Primary GA4 Event Name"] == "cta"
        assert rows[1]["Primary GA4 Event Action"] == "Click"
        assert rows[1]["Time After Click (ms)"] == 300
        assert rows[1]["Network URL"] == GA4_URL
        assert rows[1]["Full Site URL"] == SITE

    def test_write_csv_header(self, tmp_path, config) -> None:
        path = csv_report.write_csv(tmp_path / "out" / "run.csv", [make_click(1, START_MS)], SITE)
        with open(path, encoding="utf-8", newline="") as f:
            reader = csv.reader(f)
            assert tuple(next(reader)) == csv_report.COLUMNS
            assert len(list(reader)) == 1


# ── json_report ─────────────────────────────────────────────────


class TestJsonReport:
    """Tests for build_report(), write_json() and report_basename()."""

    def test_report_basename(self) -> None:
        when = datetime(2026, 1, 2, 3, 4, 5)
        assert json_report.report_basename("https://www.example.com/a", when) == "www-example-com-2026-01-02T03-04-05"

    def test_build_report(self, config) -> None:
        click = _attributed_click(config, 1, START_MS, "en=click&ep.event_label=Home")
        failed = make_click(2, START_MS + 9000, success=False)
        failed.failure_reason = "Element is not visible"
        scroll = actions.Action(
            id=3, kind="scroll", start_timestamp=START_MS + 10_000, success=True, scroll_percentage=25
        )
        captures = [*click.matched_captures, make_capture(START_MS + 30_000, "en=page_view\nen=scroll")]

        report = json_report.build_report(SITE, captures, [click, failed, scroll], config, ["Form phase: boom"])

        meta = report.metadata
        assert meta.url == SITE
        assert (meta.total_network_events, meta.total_extracted_events) == (2, 3)
        assert (meta.total_clicks, meta.successful_clicks, meta.failed_clicks) == (2, 1, 1)
        assert (meta.total_scrolls, meta.scrolls_with_events) == (1, 0)
        assert meta.errors == ["Form phase: boom"]
        assert report.network_events[0].trigger == 'click (a: "Home" - nav > a)'
        assert [r.line for r in report.network_events[1:]] == [1, 2]
        assert report.click_events[1].error == "Element is not visible"
        assert report.click_events[0].matched_network_events == 1

    def test_write_json_uses_camel_case(self, tmp_path, config) -> None:
        report = json_report.build_report(SITE, [], [make_click(1, START_MS)], config)
        path = json_report.write_json(tmp_path / "run.json", report)
        data = json.loads(path.read_text(encoding="utf-8"))
        assert set(data) == {"metadata", "networkEvents", "clickEvents"}
        assert data["metadata"]["totalClicks"] == 1
        assert data["clickEvents"][0]["element"]["textContent"] == "Home"


# ── comparison_report ───────────────────────────────────────────


class TestComparisonReport:
    """Tests for format_summary() and write_comparison_json()."""

    def _outcome(self) -> ard.ComparisonOutcome:
        return comparator.compare(
            [
                ard.ExpectedEventSpec(index=0, name="click"),
                ard.ExpectedEventSpec(index=1, name="form_submit", trigger="Submit form"),
                ard.ExpectedEventSpec(index=2, name="download", event_label="pdf"),
            ],
            [ard.ObservedEvent(event_name="click"), ard.ObservedEvent(event_name="download", event_label="zip")],
        )

    def test_format_summary(self) -> None:
        text = comparison_report.format_summary(self._outcome())
        assert text.startswith("Coverage:")
        assert "33%" in text.splitlines()[0]
        assert "missing  form_submit (trigger: Submit form)" in text
        assert "event_label: expected 'pdf' got 'zip'" in text

    def test_write_comparison_json(self, tmp_path) -> None:
        path = comparison_report.write_comparison_json(
            tmp_path / "cmp.json", self._outcome(), site_url=SITE, results_path="run.csv", ard_path="ard.csv"
        )
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["siteUrl"] == SITE
        assert data["resultsFile"] == "run.csv"
        assert data["summary"]["coveragePercent"] == 33
        assert len(data["parameterMismatch"]) == 1
        assert data["missing"][0]["expectedTrigger"] == "Submit form"
