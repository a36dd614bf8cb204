"""Tests for ga4_audit.attribution.action_log."""

from __future__ import annotations

import pytest

from fakes import START_MS, make_event

from ga4_audit.attribution import action_log


class TestActionLog:
    """Tests for ActionLog."""

    def test_begin_allocates_sequential_ids(self) -> None:
        log = action_log.ActionLog()
        first = log.begin("click", START_MS)
        second = log.begin("scroll", START_MS + 10, scroll_percentage=50, scroll_y=520)
        assert (first.id, second.id) == (1, 2)
        assert second.scroll_percentage == 50
        assert len(log) == 0

    def test_record_appends_in_order(self) -> None:
        log = action_log.ActionLog()
        a = log.begin("click", START_MS)
        b = log.begin("click", START_MS + 1)
        log.record(a)
        log.record(b)
        assert [x.id for x in log] == [1, 2]
        assert log.actions == (a, b)

    def test_record_twice_raises(self) -> None:
        log = action_log.ActionLog()
        a = log.begin("click", START_MS)
        log.record(a)
        with pytest.raises(ValueError, match="already been recorded"):
            log.record(a)

    def test_filters(self) -> None:
        log = action_log.ActionLog()
        ok = log.begin("click", START_MS, success=True)
        bad = log.begin("click", START_MS + 1, failure_reason="Element is not visible")
        form = log.begin("form", START_MS + 2, success=True, form_scenario="empty_submission")
        for action in (ok, bad, form):
            log.record(action)
        assert log.successful() == [ok, form]
        assert log.failed() == [bad]
        assert log.by_kind("form") == [form]

    def test_summary(self) -> None:
        log = action_log.ActionLog()
        click = log.begin("click", START_MS, success=True)
        click.matched_events = [make_event("click")]
        failed = log.begin("click", START_MS + 1)
        scroll = log.begin("scroll", START_MS + 2, success=True, scroll_percentage=25)
        scroll.matched_events = [make_event("scroll"), make_event("scroll", timestamp=START_MS + 5)]
        quiet_scroll = log.begin("scroll", START_MS + 3, success=True, scroll_percentage=50)
        for action in (click, failed, scroll, quiet_scroll):
            log.record(action)

        assert log.summary() == {
            "total": 4,
            "clicks": 2,
            "successful_clicks": 1,
            "failed_clicks": 1,
            "scrolls": 2,
            "scrolls_with_events": 1,
            "form_actions": 0,
            "matched_events": 3,
        }
