"""Tests for ga4_audit.comparison.ard_reader."""

from __future__ import annotations

import pytest

from fakes import START_MS, make_capture, make_click

from ga4_audit.comparison import ard_reader
from ga4_audit.parsing import payload
from ga4_audit.reporting import csv_report, json_report
from ga4_audit.utils import errors

SITE = "https://www.example.com/"


def _clicks(config):
    """One click that fired a hit and one that fired nothing."""
    hit = make_capture(START_MS + 250, "en=click&ep.event_category=nav&ep.event_label=Home")
    fired = make_click(1, START_MS)
    fired.matched_captures = [hit]
    fired.matched_events = payload.extract_events(hit, config)
    quiet = make_click(2, START_MS + 9000, text="Contact", selector="#contact")
    return [hit], [fired, quiet]


# ── load_ard ────────────────────────────────────────────────────


class TestLoadArd:
    """Tests for load_ard()."""

    def test_header_variants_and_bom(self, tmp_path) -> None:
        path = tmp_path / "ard.csv"
        path.write_text(
            " Event Name ,Event Category,event_label,Link URL,Trigger\n"
            "CTA Click,Navigation,Home,/home,Click the hero button\n"
            ",,,,\n"
            "scroll,,,,\n",
            encoding="utf-8-sig",
        )
        specs = ard_reader.load_ard(path)
        assert [(s.index, s.name) for s in specs] == [(0, "CTA Click"), (1, "scroll")]
        assert specs[0].event_category == "Navigation"
        assert specs[0].event_label == "Home"
        assert specs[0].link_url == "/home"
        assert specs[0].trigger == "Click the hero button"
        assert specs[0].raw_fields["Event Name"] == "CTA Click"

    def test_first_non_empty_alias_wins(self, tmp_path) -> None:
        path = tmp_path / "ard.csv"
        path.write_text("Event name,Name\n,download\n", encoding="utf-8")
        assert ard_reader.load_ard(path)[0].name == "download"

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(errors.ConfigurationError, match="not found"):
            ard_reader.load_ard(tmp_path / "nope.csv")

    def test_empty_file(self, tmp_path) -> None:
        path = tmp_path / "ard.csv"
        path.write_text("", encoding="utf-8")
        assert ard_reader.load_ard(path) == []


# ── observed events from CSV ────────────────────────────────────


class TestLoadObservedCsv:
    """Tests for load_observed() on per-click CSV reports."""

    def test_reads_back_click_report(self, tmp_path, config) -> None:
        _, clicks = _clicks(config)
        path = csv_report.write_csv(tmp_path / "run.csv", clicks, SITE)

        observed = ard_reader.load_observed(path)

        assert len(observed) == 1
        event = observed[0]
        assert event.event_name == "click"
        assert event.event_category == "nav"
        assert event.event_label == "Home"
        assert event.trigger == 'click (a: "Home" - nav > a)'
        assert event.network_url.startswith("https://www.google-analytics.com/g/collect")

    def test_site_url(self, tmp_path, config) -> None:
        _, clicks = _clicks(config)
        path = csv_report.write_csv(tmp_path / "run.csv", clicks, SITE)
        assert ard_reader.site_url_from_results(path) == SITE

    def test_explicit_trigger_column(self, tmp_path) -> None:
        path = tmp_path / "observed.csv"
        path.write_text("Event Name,Trigger Type\nvideo_start,autoplay\n", encoding="utf-8")
        assert ard_reader.load_observed_csv(path)[0].trigger == "autoplay"


# ── observed events from JSON ───────────────────────────────────


class TestLoadObservedJson:
    """Tests for load_observed() on JSON run artifacts."""

    def test_reads_back_run_artifact(self, tmp_path, config) -> None:
        captures, clicks = _clicks(config)
        stray = make_capture(START_MS + 20_000, "en=page_view")
        report = json_report.build_report(SITE, [*captures, stray], clicks, config)
        path = json_report.write_json(tmp_path / "run.json", report)

        observed = ard_reader.load_observed(path)

        assert [(o.event_name, o.trigger) for o in observed] == [
            ("click", 'click (a: "Home" - nav > a)'),
            ("page_view", ""),
        ]
        assert observed[0].timestamp == START_MS + 250
        assert ard_reader.site_url_from_results(path) == SITE

    def test_invalid_json(self, tmp_path) -> None:
        path = tmp_path / "run.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(errors.ConfigurationError, match="Invalid JSON"):
            ard_reader.load_observed(path)

    def test_wrong_shape(self, tmp_path) -> None:
        path = tmp_path / "run.json"
        path.write_text('{"sites": []}', encoding="utf-8")
        with pytest.raises(errors.ConfigurationError, match="Malformed"):
            ard_reader.load_run_report(path)
