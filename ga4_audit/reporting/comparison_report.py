"""ARD comparison output: a JSON document and a plain-text summary."""

from __future__ import annotations

import pathlib
from datetime import UTC, datetime

from ga4_audit.comparison import ard_reader, comparator
from ga4_audit.models import ard
from ga4_audit.utils import logger, serialization

log = logger.create_logger("Comparison-Report")


def build_document(
    outcome: ard.ComparisonOutcome,
    *,
    site_url: str = "",
    results_path: str = "",
    ard_path: str = "",
) -> dict:
    document = {
        "siteUrl": site_url,
        "generatedAt": datetime.now(UTC).isoformat(),
        "resultsFile": results_path,
        "ardFile": ard_path,
    }
    document.update(serialization.to_json_dict(outcome))
    return document


def write_comparison_json(
    path: pathlib.Path,
    outcome: ard.ComparisonOutcome,
    *,
    site_url: str = "",
    results_path: str = "",
    ard_path: str = "",
) -> pathlib.Path:
    serialization.write_json_file(
        path, build_document(outcome, site_url=site_url, results_path=results_path, ard_path=ard_path)
    )
    log.success("Comparison report saved", {"path": str(path)})
    return path


def format_summary(outcome: ard.ComparisonOutcome) -> str:
    """Multi-line human summary printed by the ``compare`` command."""
    s = outcome.summary
    lines = [
        f"Coverage:            {s.coverage_percent}%",
        f"Matching:            {s.match_count}",
        f"Parameter mismatch:  {s.mismatch_count}",
        f"Missing:             {s.missing_count}",
        f"Extra:               {s.extra_count}",
        f"ARD rows / observed: {s.total_expected} / {s.total_observed}",
    ]
    for entry in outcome.missing:
        lines.append(f"  missing  {entry.event_name} (trigger: {entry.expected_trigger})")
    for entry in outcome.parameter_mismatch:
        diffs = ", ".join(f"{d.parameter}: expected {d.expected!r} got {d.actual!r}" for d in entry.differences)
        lines.append(f"  mismatch {entry.event_name} [{entry.matched_by}] {diffs}")
    return "\n".join(lines)


def compare_files(
    results_path: str | pathlib.Path, ard_path: str | pathlib.Path
) -> tuple[ard.ComparisonOutcome, str]:
    """Load a results file and an ARD and compare them.

    Returns:
        The outcome and the site URL recorded in the results file.

    Raises:
        ConfigurationError: If either file is missing or malformed.
    """
    expected = ard_reader.load_ard(ard_path)
    observed = ard_reader.load_observed(results_path)
    return comparator.compare(expected, observed), ard_reader.site_url_from_results(results_path)
