"""
One tracking run against a single URL.

The run is a sequence of stages (launch, navigate, consent, pre-test
steps, scroll, click, form, reports).  ``TrackingRun.stages`` yields a
``(step, message, progress)`` tuple before each stage so the SSE
stream can report progress; ``execute`` simply drains it.

If any stage raises, the reports are still written from whatever was
collected, then the original error propagates.
"""

from __future__ import annotations

import dataclasses
import pathlib
from collections.abc import AsyncGenerator, Callable, Sequence
from datetime import UTC, datetime
from typing import Any
from urllib import parse

from ga4_audit.attribution import action_log as action_log_mod
from ga4_audit.attribution import engine as engine_mod
from ga4_audit.browser import session as browser_session
from ga4_audit.browser import steps
from ga4_audit.config import TrackerConfig
from ga4_audit.models import actions, browser, capture
from ga4_audit.reporting import csv_report, json_report
from ga4_audit.testers import click_tester, form_tester, scroll_tester
from ga4_audit.utils import errors, logger
from ga4_audit.utils import url as url_mod

log = logger.create_logger("Tracking-Run")

SessionFactory = Callable[[TrackerConfig], Any]


@dataclasses.dataclass
class RunResult:
    """Everything a finished (or aborted) run produced."""

    url: str
    actions: list[actions.Action]
    captures: list[capture.NetworkCapture]
    report_paths: list[pathlib.Path] = dataclasses.field(default_factory=list)
    errors: list[str] = dataclasses.field(default_factory=list)
    form_error: str | None = None
    duration_ms: int = 0

    @property
    def clicks(self) -> list[actions.Action]:
        return [a for a in self.actions if a.kind == "click"]

    @property
    def scrolls(self) -> list[actions.Action]:
        return [a for a in self.actions if a.kind == "scroll"]

    @property
    def form_actions(self) -> list[actions.Action]:
        return [a for a in self.actions if a.kind == "form"]


class TrackingRun:
    """Drives the browser through every enabled phase for one URL."""

    def __init__(
        self,
        url: str,
        config: TrackerConfig,
        *,
        form_definition: browser.FormDefinition | None = None,
        pre_test_steps: Sequence[Any] = (),
        after_refresh_steps: Sequence[Any] = (),
        session_factory: SessionFactory | None = None,
        output_dir: str | pathlib.Path | None = None,
    ) -> None:
        if not url:
            raise errors.ConfigurationError("URL is required")
        self.url = url
        self._config = config
        self._form_definition = form_definition
        self._pre_test_steps = list(pre_test_steps)
        self._after_refresh_steps = list(after_refresh_steps)
        self._output_dir = pathlib.Path(output_dir or config.reports.output_dir)

        factory = session_factory or browser_session.BrowserSession
        self.session = factory(config)
        self.action_log = action_log_mod.ActionLog()
        self.engine = engine_mod.AttributionEngine(config)
        self.errors: list[str] = []
        self.form_error: str | None = None
        self.report_paths: list[pathlib.Path] = []
        self._started = datetime.now(UTC)

    # ==========================================================================
    # Stages
    # ==========================================================================

    def _tester_args(self) -> tuple[Any, ...]:
        return (self.session, self._config, self.action_log, self.engine)

    async def stages(self) -> AsyncGenerator[tuple[str, str, int]]:
        """Run the stages in order, yielding a progress tuple before each."""
        config = self._config
        session = self.session
        hostname = parse.urlparse(self.url).hostname or self.url

        yield ("browser", "Launching browser...", 5)
        await session.launch_browser(config.headless)

        yield ("navigate", f"Loading {hostname}...", 10)
        nav = await session.navigate_to(self.url)
        if not nav.success:
            raise errors.ActionExecutionError(f"Failed to load {self.url}: {nav.error_message}")
        await session.wait_for_timeout(config.general.page_load_timeout_ms)

        yield ("consent", "Handling cookie consent...", 15)
        await session.dismiss_consent()

        if self._pre_test_steps:
            yield ("pre-test", "Running pre-test steps...", 18)
            await steps.run_steps(session, self._pre_test_steps)

        if config.phases.scroll:
            yield ("scroll", "Testing scroll thresholds...", 20)
            log.subsection("Scroll phase")
            await scroll_tester.ScrollTester(*self._tester_args()).run()
            await session.wait_for_timeout(config.scroll.event_delay_ms)

        if config.phases.click:
            yield ("click", "Testing clickable elements...", 35)
            log.subsection("Click phase")
            await click_tester.ClickTester(*self._tester_args(), self._after_refresh_steps).run()

        if config.phases.forms and self._form_definition is not None:
            yield ("form", "Testing form...", 80)
            log.subsection("Form phase")
            await session.wait_for_timeout(config.general.network_wait_ms * 2)
            await self._run_form_phase(self._form_definition)

        await session.wait_for_timeout(config.general.page_load_timeout_ms)

        yield ("reports", "Writing reports...", 95)
        self.write_reports()

    async def _run_form_phase(self, definition: browser.FormDefinition) -> None:
        """Run the form tester; a missing form only ends this phase."""
        if definition.page:
            target = parse.urljoin(self.url, definition.page)
            if target != self.session.current_url:
                await self.session.navigate_to(target)
                await self.session.wait_for_timeout(self._config.general.page_load_timeout_ms)
        tester = form_tester.FormTester(*self._tester_args(), definition, self._after_refresh_steps)
        try:
            await tester.run()
        except errors.FormPhaseError as exc:
            self.form_error = errors.get_error_message(exc)
            self.errors.append(f"Form phase: {self.form_error}")
            log.error("Form phase aborted", {"error": self.form_error})

    # ==========================================================================
    # Reports
    # ==========================================================================

    def report_stem(self) -> str:
        return json_report.report_basename(self.url, self._started)

    def write_reports(self) -> list[pathlib.Path]:
        """Write the enabled report artifacts into the output directory."""
        settings = self._config.reports
        stem = self.report_stem()
        recorded = list(self.action_log)
        paths: list[pathlib.Path] = []

        if settings.csv:
            paths.append(csv_report.write_csv(self._output_dir / f"{stem}.csv", recorded, self.url))
        if settings.json_artifact:
            report = json_report.build_report(
                self.url, self.session.get_captures(), recorded, self._config, self.errors
            )
            paths.append(json_report.write_json(self._output_dir / f"{stem}.json", report))

        self.report_paths = paths
        return paths

    def write_fallback_reports(self) -> None:
        try:
            self.write_reports()
        except Exception as report_error:
            log.error("Report generation failed", {"error": errors.get_error_message(report_error)})

    def result(self) -> RunResult:
        elapsed = datetime.now(UTC) - self._started
        return RunResult(
            url=self.url,
            actions=list(self.action_log),
            captures=self.session.get_captures(),
            report_paths=list(self.report_paths),
            errors=list(self.errors),
            form_error=self.form_error,
            duration_ms=int(elapsed.total_seconds() * 1000),
        )

    # ==========================================================================
    # Entry points
    # ==========================================================================

    def _log_summary(self) -> None:
        summary = self.action_log.summary()
        log.info(
            "Run summary",
            {
                "clicks": f"{summary['successful_clicks']}/{summary['clicks']}",
                "scrolls": summary["scrolls"],
                "formActions": summary["form_actions"],
                "captures": len(self.session.get_captures()),
            },
        )

    async def execute(self) -> RunResult:
        """Run every stage; reports are written even when a stage fails.

        Raises:
            Exception: Whatever a stage raised, after the fallback
                reports have been attempted.
        """
        log.section(f"Tracking: {self.url}")
        self.open_log_file()
        log.start_timer("tracking-run")
        try:
            async for step, message, _progress in self.stages():
                log.debug(message, {"step": step})
            self._log_summary()
            log.end_timer("tracking-run", "Tracking run complete")
            return self.result()
        except Exception as exc:
            self.errors.append(errors.get_error_message(exc))
            log.error("Tracking run failed", {"error": self.errors[-1]})
            self.write_fallback_reports()
            raise
        finally:
            await self.close()
            logger.end_log_file()

    def open_log_file(self) -> pathlib.Path | None:
        """Start the per-run log file when ``reports.log_file`` is enabled."""
        logs_dir = self._output_dir / "logs" if self._config.reports.log_file else None
        return logger.start_log_file(url_mod.extract_domain(self.url), logs_dir)

    async def close(self) -> None:
        try:
            await self.session.close()
        except Exception as err:
            log.warn("Error during browser cleanup", {"error": errors.get_error_message(err)})
