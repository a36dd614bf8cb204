"""Tests for ga4_audit.pipeline.run — a full tracking run on a fake browser."""

from __future__ import annotations

import asyncio
import json

import pytest

from fakes import FakeElement, FakeSession

from ga4_audit import config as config_mod
from ga4_audit.data import loader
from ga4_audit.models import steps
from ga4_audit.pipeline import run
from ga4_audit.utils import errors

SITE = "https://www.example.com/"
SUBMIT = 'form#contact button[type="submit"]'


def _factory(holder: list, **kwargs):
    def make(cfg):
        session = FakeSession(cfg, **kwargs)
        holder.append(session)
        return session

    return make


def _fast_config(**overrides):
    return config_mod.load_config(scroll={"thresholds": (25, 50)}, **overrides)


class TestTrackingRun:
    """Tests for TrackingRun."""

    def test_requires_url(self, config) -> None:
        with pytest.raises(errors.ConfigurationError, match="URL is required"):
            run.TrackingRun("", config, session_factory=FakeSession)

    def test_full_run(self, tmp_path) -> None:
        sessions: list[FakeSession] = []
        factory = _factory(
            sessions,
            elements=[FakeElement("Home", hits=((300, "en=click&ep.event_label=Home"),)), FakeElement("About")],
            scroll_hits={520: ((50, "en=scroll&epn.percent_scrolled=50"),)},
            selector_hits={SUBMIT: ((200, "en=form_submit"),)},
            present={"form#contact", SUBMIT},
        )
        tracking = run.TrackingRun(
            SITE,
            _fast_config(),
            form_definition=loader.load_form_definition("contact-sample"),
            session_factory=factory,
            output_dir=tmp_path,
        )

        result = asyncio.run(tracking.execute())

        session = sessions[0]
        assert session.calls[0] == ("launch", False)
        assert ("navigate", "https://www.example.com/contact") in session.calls
        assert session.closed
        assert [a.scroll_percentage for a in result.scrolls] == [25, 50]
        assert [a.element.text_content for a in result.clicks] == ["Home", "About"]
        assert len(result.form_actions) == 8
        assert result.form_error is None
        assert result.errors == []
        assert sorted(p.suffix for p in result.report_paths) == [".csv", ".json"]
        assert all(p.parent == tmp_path for p in result.report_paths)

        artifact = json.loads(next(p for p in result.report_paths if p.suffix == ".json").read_text("utf-8"))
        assert artifact["metadata"]["url"] == SITE
        assert artifact["metadata"]["totalClicks"] == 2
        assert artifact["metadata"]["totalFormActions"] == 8

    def test_stage_order(self, tmp_path) -> None:
        tracking = run.TrackingRun(
            SITE,
            _fast_config(),
            pre_test_steps=steps.parse_steps(["wait"]),
            session_factory=FakeSession,
            output_dir=tmp_path,
        )

        async def collect():
            try:
                return [step async for step, _message, _progress in tracking.stages()]
            finally:
                await tracking.close()

        assert asyncio.run(collect()) == ["browser", "navigate", "consent", "pre-test", "scroll", "click", "reports"]

    def test_disabled_phases(self, tmp_path) -> None:
        cfg = _fast_config(phases={"scroll": False, "click": False})
        result = asyncio.run(
            run.TrackingRun(SITE, cfg, session_factory=FakeSession, output_dir=tmp_path).execute()
        )
        assert result.actions == []

    def test_missing_form_does_not_abort_run(self, tmp_path) -> None:
        tracking = run.TrackingRun(
            SITE,
            _fast_config(phases={"scroll": False}),
            form_definition=loader.load_form_definition("contact-sample"),
            session_factory=_factory([], elements=[FakeElement("Home")]),
            output_dir=tmp_path,
        )
        result = asyncio.run(tracking.execute())
        assert result.form_error == "Form not found: form#contact"
        assert result.errors == ["Form phase: Form not found: form#contact"]
        assert len(result.clicks) == 1
        assert len(result.report_paths) == 2

    def test_navigation_failure_writes_fallback_reports(self, tmp_path) -> None:
        sessions: list[FakeSession] = []
        tracking = run.TrackingRun(
            SITE, _fast_config(), session_factory=_factory(sessions, nav_ok=False), output_dir=tmp_path
        )

        with pytest.raises(errors.ActionExecutionError, match="Failed to load"):
            asyncio.run(tracking.execute())

        assert sessions[0].closed
        assert len(tracking.report_paths) == 2
        artifact = json.loads(next(p for p in tracking.report_paths if p.suffix == ".json").read_text("utf-8"))
        assert artifact["metadata"]["errors"][0].startswith("Failed to load https://www.example.com/")

    def test_report_selection(self, tmp_path) -> None:
        cfg = _fast_config(reports={"csv": False}, phases={"scroll": False, "click": False})
        result = asyncio.run(run.TrackingRun(SITE, cfg, session_factory=FakeSession, output_dir=tmp_path).execute())
        assert [p.suffix for p in result.report_paths] == [".json"]
        assert result.report_paths[0].name.startswith("www-example-com-")
