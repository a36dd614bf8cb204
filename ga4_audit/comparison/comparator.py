"""
Reconciliation of observed events against an ARD.

Each observed event is looked up by normalised event name, falling
back to normalised event category.  Among the candidate ARD rows the
first one (in document order) not yet matched is taken, so ``N``
duplicate rows require ``N`` occurrences.  A matched pair whose
auxiliary parameters differ is reported as a parameter mismatch.
Expected values that contain a template marker (``$var`` or
``{var}``) are never compared, and an empty expected value places no
constraint on the observed one.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable

from ga4_audit.models import ard
from ga4_audit.utils import logger

log = logger.create_logger("ARD-Comparator")

REASON_NOT_IN_ARD = "Not specified in ARD"
REASON_EXTRA_OCCURRENCE = "Additional occurrence beyond ARD specification"

# (parameter, expected attribute, observed attribute)
COMPARED_PARAMETERS: tuple[tuple[str, str, str], ...] = (
    ("event_category", "event_category", "event_category"),
    ("event_action", "event_action", "event_action"),
    ("event_label", "event_label", "event_label"),
    ("link_url", "link_url", "link_url"),
    ("file_name", "file_name", "file_name"),
)

_SEPARATORS = re.compile(r"[_\s]+")
_BRACED = re.compile(r"\{[^}]*\}")


def normalize(value: str | None) -> str:
    """Lowercase, trim and collapse runs of ``_``/whitespace into one ``_``."""
    if not value:
        return ""
    return _SEPARATORS.sub("_", value.strip().lower())


def is_placeholder(value: str) -> bool:
    """True when an expected value is a template (``$var`` or ``{var}``)."""
    return "$" in value or bool(_BRACED.search(value))


def coverage(match_count: int, total_expected: int) -> int:
    """Matched share of the ARD as a whole percentage, halves rounding up."""
    if total_expected <= 0:
        return 0
    return math.floor(match_count / total_expected * 100 + 0.5)


def diff_parameters(observed: ard.ObservedEvent, expected: ard.ExpectedEventSpec) -> list[ard.ParameterDiff]:
    """Return one diff per expected parameter the observed event violates."""
    differences: list[ard.ParameterDiff] = []
    for parameter, expected_attr, observed_attr in COMPARED_PARAMETERS:
        want = (getattr(expected, expected_attr) or "").strip()
        if not want or is_placeholder(want):
            continue
        got = (getattr(observed, observed_attr) or "").strip()
        if got.lower() != want.lower():
            differences.append(ard.ParameterDiff(parameter=parameter, expected=want, actual=got))
    return differences


def _index(
    expected: list[ard.ExpectedEventSpec],
) -> tuple[dict[str, list[ard.ExpectedEventSpec]], dict[str, list[ard.ExpectedEventSpec]]]:
    by_name: dict[str, list[ard.ExpectedEventSpec]] = {}
    by_category: dict[str, list[ard.ExpectedEventSpec]] = {}
    for spec in expected:
        if name := normalize(spec.name):
            by_name.setdefault(name, []).append(spec)
        if category := normalize(spec.event_category):
            by_category.setdefault(category, []).append(spec)
    return by_name, by_category


def compare(
    expected: Iterable[ard.ExpectedEventSpec],
    observed: Iterable[ard.ObservedEvent],
) -> ard.ComparisonOutcome:
    """Compare observed events against ARD rows.

    Args:
        expected: ARD rows; ``index`` is their identity.
        observed: Events seen during the run, in the order they occurred.

    Returns:
        The classified entries and summary counts.  ``coverage_percent``
        is the rounded share of matched rows, or 0 for an
        empty ARD.
    """
    expected_rows = list(expected)
    observed_rows = list(observed)
    by_name, by_category = _index(expected_rows)
    matched_indices: set[int] = set()
    outcome = ard.ComparisonOutcome()

    for event in observed_rows:
        name = normalize(event.event_name)
        category = normalize(event.event_category)

        candidates: list[ard.ExpectedEventSpec] = []
        match_key = ""
        matched_by: ard.MatchedBy = "none"
        if name and by_name.get(name):
            candidates, match_key, matched_by = by_name[name], name, "event_name"
        elif category and by_category.get(category):
            candidates, match_key, matched_by = by_category[category], category, "event_category"

        if not candidates:
            outcome.extra.append(
                ard.ExtraEntry(
                    event_name=name or category or "Unknown",
                    matched_by="none",
                    observed=event,
                    reason=REASON_NOT_IN_ARD,
                )
            )
            continue

        spec = next((s for s in candidates if s.index not in matched_indices), None)
        if spec is None:
            outcome.extra.append(
                ard.ExtraEntry(
                    event_name=match_key,
                    matched_by=matched_by,
                    observed=event,
                    reason=REASON_EXTRA_OCCURRENCE,
                )
            )
            continue

        matched_indices.add(spec.index)
        differences = diff_parameters(event, spec)
        if differences:
            outcome.parameter_mismatch.append(
                ard.MismatchEntry(
                    event_name=match_key,
                    matched_by=matched_by,
                    observed=event,
                    expected=spec,
                    differences=differences,
                )
            )
        else:
            outcome.matching.append(
                ard.MatchingEntry(
                    event_name=match_key,
                    matched_by=matched_by,
                    observed=event,
                    expected=spec,
                    trigger=event.trigger or "Unknown",
                )
            )

    for spec in expected_rows:
        if spec.index in matched_indices:
            continue
        outcome.missing.append(
            ard.MissingEntry(
                event_name=normalize(spec.name) or normalize(spec.event_category) or "Unknown",
                expected=spec,
                expected_trigger=spec.trigger or "Unknown",
            )
        )

    total = len(expected_rows)
    outcome.summary = ard.ComparisonSummary(
        total_expected=total,
        total_observed=len(observed_rows),
        match_count=len(outcome.matching),
        missing_count=len(outcome.missing),
        extra_count=len(outcome.extra),
        mismatch_count=len(outcome.parameter_mismatch),
        coverage_percent=coverage(len(outcome.matching), total),
    )
    log.info(
        "Comparison complete",
        {
            "matching": outcome.summary.match_count,
            "missing": outcome.summary.missing_count,
            "extra": outcome.summary.extra_count,
            "mismatch": outcome.summary.mismatch_count,
            "coverage": f"{outcome.summary.coverage_percent}%",
        },
    )
    return outcome
