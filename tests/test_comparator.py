"""Tests for ga4_audit.comparison.comparator."""

from __future__ import annotations

import pytest

from ga4_audit.comparison import comparator
from ga4_audit.models import ard


def _spec(index: int, name: str = "", **fields) -> ard.ExpectedEventSpec:
    return ard.ExpectedEventSpec(index=index, name=name, **fields)


def _seen(name: str = "", **fields) -> ard.ObservedEvent:
    return ard.ObservedEvent(event_name=name, **fields)


# ── normalize ───────────────────────────────────────────────────


class TestNormalize:
    """Tests for normalize()."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Page View", "page_view"),
            ("  CTA   Click ", "cta_click"),
            ("form__submit", "form_submit"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_normalize(self, raw, expected) -> None:
        assert comparator.normalize(raw) == expected


# ── coverage ────────────────────────────────────────────────────


class TestCoverage:
    """Tests for coverage()."""

    def test_rounds_half_up(self) -> None:
        assert comparator.coverage(2, 3) == 67
        assert comparator.coverage(1, 8) == 13

    def test_empty_ard(self) -> None:
        assert comparator.coverage(0, 0) == 0


# ── compare ─────────────────────────────────────────────────────


class TestCompare:
    """Tests for compare()."""

    def test_exact_match_by_name(self) -> None:
        outcome = comparator.compare([_spec(0, "CTA Click")], [_seen("cta_click", trigger="click (a: \"Go\" - #go)")])
        assert len(outcome.matching) == 1
        entry = outcome.matching[0]
        assert entry.event_name == "cta_click"
        assert entry.matched_by == "event_name"
        assert entry.trigger == 'click (a: "Go" - #go)'
        assert outcome.summary.coverage_percent == 100

    def test_trigger_defaults_to_unknown(self) -> None:
        outcome = comparator.compare([_spec(0, "click")], [_seen("click")])
        assert outcome.matching[0].trigger == "Unknown"

    def test_category_fallback(self) -> None:
        outcome = comparator.compare(
            [_spec(0, event_category="Navigation")],
            [_seen("nav_click", event_category="navigation")],
        )
        assert outcome.matching[0].matched_by == "event_category"
        assert outcome.matching[0].event_name == "navigation"

    def test_duplicate_rows_need_each_occurrence(self) -> None:
        outcome = comparator.compare(
            [_spec(0, "click"), _spec(1, "click")],
            [_seen("click"), _seen("click"), _seen("click")],
        )
        assert [m.expected.index for m in outcome.matching] == [0, 1]
        assert len(outcome.extra) == 1
        assert outcome.extra[0].reason == comparator.REASON_EXTRA_OCCURRENCE
        assert outcome.extra[0].matched_by == "event_name"

    def test_placeholders_are_not_compared(self) -> None:
        specs = [_spec(0, "click", event_label="{page_title}"), _spec(1, "click", event_action="$action")]
        observed = [_seen("click", event_label="About us"), _seen("click", event_action="Hover")]
        outcome = comparator.compare(specs, observed)
        assert len(outcome.matching) == 2
        assert outcome.parameter_mismatch == []

    def test_empty_expected_value_is_unconstrained(self) -> None:
        outcome = comparator.compare([_spec(0, "click")], [_seen("click", event_label="Anything")])
        assert len(outcome.matching) == 1

    def test_parameter_mismatch(self) -> None:
        outcome = comparator.compare(
            [_spec(0, "click", event_action="Click", event_label="Home")],
            [_seen("click", event_action="Hover", event_label="HOME")],
        )
        assert outcome.matching == []
        entry = outcome.parameter_mismatch[0]
        assert [(d.parameter, d.expected, d.actual) for d in entry.differences] == [
            ("event_action", "Click", "Hover")
        ]
        assert outcome.summary.mismatch_count == 1
        assert outcome.summary.coverage_percent == 0

    def test_missing_rows(self) -> None:
        outcome = comparator.compare(
            [_spec(0, "Form Submit", trigger="Submit contact form"), _spec(1, event_category="Video")],
            [],
        )
        assert [(m.event_name, m.expected_trigger) for m in outcome.missing] == [
            ("form_submit", "Submit contact form"),
            ("video", "Unknown"),
        ]

    def test_event_without_identifier_is_unknown_extra(self) -> None:
        outcome = comparator.compare([_spec(0, "click")], [_seen("")])
        assert outcome.extra[0].event_name == "Unknown"
        assert outcome.extra[0].reason == comparator.REASON_NOT_IN_ARD
        assert outcome.extra[0].matched_by == "none"

    def test_summary_counts(self) -> None:
        outcome = comparator.compare(
            [_spec(0, "click"), _spec(1, "scroll"), _spec(2, "download", event_label="pdf")],
            [_seen("click"), _seen("download", event_label="zip"), _seen("video_start")],
        )
        s = outcome.summary
        assert (s.total_expected, s.total_observed) == (3, 3)
        assert (s.match_count, s.mismatch_count, s.missing_count, s.extra_count) == (1, 1, 1, 1)
        assert s.coverage_percent == 33
