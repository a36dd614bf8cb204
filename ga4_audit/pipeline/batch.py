"""
Sequential batch runner.

Loads a JSON site list, runs each enabled site one after another with
a fixed pause in between, and writes ``batch-summary-<ts>.json`` to
the output directory.  A failing site is recorded and the batch moves
on.  With ``resume=True`` sites completed by a previous interrupted
batch (tracked in a state file) are skipped.
"""

from __future__ import annotations

import asyncio
import json
import pathlib
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from ga4_audit import config as config_mod
from ga4_audit.config import TrackerConfig
from ga4_audit.data import loader
from ga4_audit.models import run as run_models
from ga4_audit.pipeline import run as run_mod
from ga4_audit.utils import errors, logger, serialization

log = logger.create_logger("Batch")

STATE_FILE_NAME = ".batch-state.json"

SiteRunner = Callable[[run_models.SiteEntry, TrackerConfig], Awaitable[run_mod.RunResult]]


# ============================================================================
# Per-site configuration
# ============================================================================


def site_config(base: TrackerConfig, options: run_models.SiteOptions) -> TrackerConfig:
    """Apply a site's ``options`` block on top of the batch config."""
    cfg = config_mod.with_click_pause(base, options.click_pause)
    cfg = config_mod.with_max_clicks(cfg, options.max_clicks)
    if options.phases:
        known = {k: v for k, v in options.phases.items() if k in type(cfg.phases).model_fields}
        cfg = cfg.model_copy(update={"phases": cfg.phases.model_copy(update=known)})
    return cfg


async def run_site(site: run_models.SiteEntry, cfg: TrackerConfig) -> run_mod.RunResult:
    """Default site runner: a full :class:`TrackingRun` for ``site.base_url``."""
    definition = loader.load_form_definition(site.options.form_config) if site.options.form_config else None
    tracking = run_mod.TrackingRun(site.base_url, cfg, form_definition=definition)
    return await tracking.execute()


# ============================================================================
# Resume state
# ============================================================================


def _load_state(path: pathlib.Path) -> set[str]:
    if not path.is_file():
        log.info("No previous batch state found, starting fresh")
        return set()
    try:
        state = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        log.warn("Ignoring unreadable batch state", {"error": errors.get_error_message(exc)})
        return set()
    completed = set(state.get("completedSites", []))
    log.info("Resuming previous batch", {"lastRun": state.get("lastRun"), "completed": len(completed)})
    return completed


def _save_state(path: pathlib.Path, completed: list[str], total: int) -> None:
    try:
        serialization.write_json_file(
            path,
            {"lastRun": datetime.now(UTC).isoformat(), "completedSites": completed, "totalSites": total},
        )
    except OSError as exc:
        log.warn("Could not save batch state", {"error": errors.get_error_message(exc)})


# ============================================================================
# Batch
# ============================================================================


async def run_batch(
    config_path: str | pathlib.Path,
    cfg: TrackerConfig,
    *,
    resume: bool = False,
    site_runner: SiteRunner = run_site,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> run_models.BatchSummary:
    """Run every enabled site in *config_path* and write the summary.

    Raises:
        ConfigurationError: If the site list cannot be loaded or is empty.
    """
    batch_file = loader.load_batch_config(config_path)
    sites = [s for s in batch_file.sites if s.enabled]
    output_dir = pathlib.Path(cfg.reports.output_dir)
    state_path = output_dir / STATE_FILE_NAME

    start = datetime.now(UTC)
    summary = run_models.BatchSummary(config_file=str(config_path), start_time=start.isoformat(), total=len(sites))

    log.section("Batch site tracker started")
    log.info(f"Loaded {len(sites)} enabled sites", {"config": str(config_path)})
    for idx, site in enumerate(sites, start=1):
        log.info(f"{idx}. {site.name}", {"url": site.base_url})

    completed_before = _load_state(state_path) if resume else set()
    to_run = [s for s in sites if s.base_url not in completed_before]
    for site in sites:
        if site.base_url in completed_before:
            summary.skipped += 1
            summary.sites.append(
                run_models.SiteResult(name=site.name, base_url=site.base_url, status="skipped")
            )

    for position, site in enumerate(to_run):
        log.section(f"Site {sites.index(site) + 1}/{len(sites)}: {site.name}")
        site_start = datetime.now(UTC)
        try:
            result = await site_runner(site, site_config(cfg, site.options))
        except Exception as exc:
            duration = int((datetime.now(UTC) - site_start).total_seconds() * 1000)
            summary.failed += 1
            summary.sites.append(
                run_models.SiteResult(
                    name=site.name,
                    base_url=site.base_url,
                    status="failed",
                    duration_ms=duration,
                    timestamp=datetime.now(UTC).isoformat(),
                    error=errors.get_error_message(exc),
                )
            )
            log.error(f"Site failed after {logger.format_duration(duration)}", {"error": summary.sites[-1].error})
        else:
            duration = int((datetime.now(UTC) - site_start).total_seconds() * 1000)
            summary.completed += 1
            summary.sites.append(
                run_models.SiteResult(
                    name=site.name,
                    base_url=site.base_url,
                    status="success",
                    duration_ms=duration,
                    timestamp=datetime.now(UTC).isoformat(),
                    report_paths=[str(p) for p in result.report_paths],
                )
            )
            log.success(f"Site completed in {logger.format_duration(duration)}")
            done = sorted(completed_before | {s.base_url for s in summary.sites if s.status == "success"})
            _save_state(state_path, done, len(sites))

        if position < len(to_run) - 1:
            log.info(f"Waiting {cfg.batch.inter_site_delay_ms}ms before next site")
            await sleep(cfg.batch.inter_site_delay_ms / 1000)

    end = datetime.now(UTC)
    summary.end_time = end.isoformat()
    summary.total_duration_ms = int((end - start).total_seconds() * 1000)
    write_summary(output_dir, summary, end)
    state_path.unlink(missing_ok=True)
    return summary


def write_summary(output_dir: pathlib.Path, summary: run_models.BatchSummary, when: datetime) -> pathlib.Path:
    """Log the batch totals and save them as ``batch-summary-<ts>.json``."""
    log.section("Batch summary")
    log.info(
        "Results",
        {
            "total": summary.total,
            "completed": summary.completed,
            "failed": summary.failed,
            "skipped": summary.skipped,
            "successRate": f"{summary.success_rate:.1f}%",
            "averageDuration": logger.format_duration(summary.average_duration_ms),
        },
    )
    for site in summary.sites:
        if site.status == "failed":
            log.warn(f"Failed: {site.name} ({site.base_url})", {"error": site.error})

    path = output_dir / f"batch-summary-{when.strftime('%Y-%m-%dT%H-%M-%S')}.json"
    try:
        serialization.write_json_file(path, serialization.to_json_dict(summary))
        log.success("Batch summary saved", {"path": str(path)})
    except OSError as exc:
        log.error("Could not save batch summary", {"error": errors.get_error_message(exc)})
    return path
