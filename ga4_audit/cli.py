"""
Command line entry point.

    ga4-audit track <url> [--headless] [--click-pause MS] [--form-config NAME]
                          [--steps FILE] [--max-clicks N] [--output-dir DIR]
    ga4-audit batch <sites.json> [--headless] [--resume]
    ga4-audit compare <results.csv|results.json> <ard.csv> [--output FILE]

Exit status is 0 on success, 2 for configuration errors (bad arguments,
missing or malformed files) and 1 for any other failure.
"""

from __future__ import annotations

import argparse
import asyncio
import pathlib
import sys
from collections.abc import Sequence
from datetime import UTC, datetime

import dotenv

from ga4_audit import config as config_mod
from ga4_audit.config import TrackerConfig
from ga4_audit.data import loader
from ga4_audit.pipeline import batch, run
from ga4_audit.reporting import comparison_report
from ga4_audit.utils import errors, logger
from ga4_audit.utils import url as url_mod

log = logger.create_logger("CLI")

EXIT_FAILURE = 1
EXIT_CONFIGURATION = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ga4-audit",
        description="Verify GA4 event tracking by driving a browser and correlating analytics hits.",
    )
    parser.add_argument("--quiet", action="store_true", help="Hide debug output")
    sub = parser.add_subparsers(dest="command", required=True)

    track = sub.add_parser("track", help="Run click, scroll and form tests against one URL")
    track.add_argument("url", help="Page to test")
    track.add_argument("--headless", action="store_true", default=None, help="Run the browser headless")
    track.add_argument("--click-pause", type=int, default=None, help="Click attribution window in ms")
    track.add_argument("--form-config", default=None, help="Form definition name or JSON path")
    track.add_argument("--forms-dir", default=None, help="Directory searched for --form-config names")
    track.add_argument("--steps", default=None, help='JSON file with "preTest" / "afterRefresh" step lists')
    track.add_argument("--max-clicks", type=int, default=None, help="Only test the first N clickable elements")
    track.add_argument("--output-dir", default=None, help="Where reports are written")
    track.add_argument("--log-file", action="store_true", help="Also write the run log under <output-dir>/logs")

    batch_cmd = sub.add_parser("batch", help="Run every enabled site in a JSON site list")
    batch_cmd.add_argument("config_file", help="JSON file with a sites[] array")
    batch_cmd.add_argument("--headless", action="store_true", default=None, help="Run the browser headless")
    batch_cmd.add_argument("--resume", action="store_true", help="Skip sites completed by an interrupted batch")
    batch_cmd.add_argument("--output-dir", default=None, help="Where reports are written")
    batch_cmd.add_argument("--log-file", action="store_true", help="Also write each run log under <output-dir>/logs")

    compare = sub.add_parser("compare", help="Compare a results CSV/JSON against an ARD CSV")
    compare.add_argument("results", help="Results CSV or JSON artifact from a tracking run")
    compare.add_argument("ard", help="Analytics Requirements Document (CSV)")
    compare.add_argument("--output", default=None, help="Comparison JSON path")
    return parser


def _config_from_args(args: argparse.Namespace) -> TrackerConfig:
    overrides: dict = {}
    if getattr(args, "headless", None) is not None:
        overrides["headless"] = args.headless
    reports: dict = {}
    if getattr(args, "output_dir", None):
        reports["output_dir"] = args.output_dir
    if getattr(args, "log_file", False):
        reports["log_file"] = True
    if reports:
        overrides["reports"] = reports
    cfg = config_mod.load_config(**overrides)
    cfg = config_mod.with_click_pause(cfg, getattr(args, "click_pause", None))
    return config_mod.with_max_clicks(cfg, getattr(args, "max_clicks", None))


# ============================================================================
# Commands
# ============================================================================


async def _track(args: argparse.Namespace) -> int:
    cfg = _config_from_args(args)
    definition = loader.load_form_definition(args.form_config, args.forms_dir) if args.form_config else None
    pre_test, after_refresh = loader.load_step_script(args.steps) if args.steps else ([], [])

    tracking = run.TrackingRun(
        args.url,
        cfg,
        form_definition=definition,
        pre_test_steps=pre_test,
        after_refresh_steps=after_refresh,
    )
    result = await tracking.execute()
    successful = sum(1 for a in result.clicks if a.success)
    print(f"Clicks: {successful}/{len(result.clicks)} successful")
    print(f"Scrolls: {len(result.scrolls)}")
    print(f"GA4 captures: {len(result.captures)}")
    if definition is not None:
        aborted = f" (aborted: {result.form_error})" if result.form_error else ""
        print(f"Form actions: {len(result.form_actions)}{aborted}")
    for path in result.report_paths:
        print(f"Report: {path}")
    return 0


async def _batch(args: argparse.Namespace) -> int:
    cfg = _config_from_args(args)
    summary = await batch.run_batch(args.config_file, cfg, resume=args.resume)
    print(f"Sites: {summary.completed} completed, {summary.failed} failed, {summary.skipped} skipped")
    return 0 if summary.failed == 0 else EXIT_FAILURE


def _compare(args: argparse.Namespace) -> int:
    cfg = config_mod.load_config()
    outcome, site_url = comparison_report.compare_files(args.results, args.ard)
    print(comparison_report.format_summary(outcome))

    if args.output or cfg.reports.comparison_json:
        stamp = datetime.now(UTC).strftime("%Y-%m-%dT%H-%M-%S")
        slug = url_mod.hostname_slug(site_url) if site_url else pathlib.Path(args.results).stem
        default = pathlib.Path(cfg.reports.output_dir) / f"ard-comparison-{slug}-{stamp}.json"
        output = pathlib.Path(args.output) if args.output else default
        comparison_report.write_comparison_json(
            output, outcome, site_url=site_url, results_path=str(args.results), ard_path=str(args.ard)
        )
        print(f"Report: {output}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    dotenv.load_dotenv()
    args = build_parser().parse_args(argv)
    if args.quiet:
        logger.set_debug(False)
    try:
        match args.command:
            case "track":
                return asyncio.run(_track(args))
            case "batch":
                return asyncio.run(_batch(args))
            case "compare":
                return _compare(args)
    except errors.ConfigurationError as exc:
        log.error("Configuration error", {"error": errors.get_error_message(exc)})
        return EXIT_CONFIGURATION
    except KeyboardInterrupt:
        log.warn("Interrupted")
        return EXIT_FAILURE
    except Exception as exc:
        log.error("Fatal error", {"error": errors.get_error_message(exc)})
        return EXIT_FAILURE
    return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
