"""
Executor for scripted page steps.

Steps run before testing starts and again after every page reload
(e.g. closing a popup that re-appears).  A failing step is logged and
the remaining steps still run.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from ga4_audit.models import steps as step_models
from ga4_audit.utils import errors, logger

log = logger.create_logger("Page-Steps")


class StepDriver(Protocol):
    """The browser operations steps need."""

    async def wait_for_timeout(self, ms: int) -> None: ...

    async def click_selector(self, selector: str, timeout: int | None = None) -> None: ...

    async def fill(self, selector: str, value: str, timeout: int | None = None) -> None: ...

    async def remove_elements(self, selectors: tuple[str, ...]) -> int: ...


async def run_step(driver: StepDriver, step: Any) -> None:
    """Perform a single step."""
    match step:
        case step_models.WaitStep(time=ms):
            await driver.wait_for_timeout(ms)
        case step_models.ClickStep(selector=selector):
            await driver.click_selector(selector)
        case step_models.TypeStep(selector=selector, value=value):
            await driver.fill(selector, value)
        case step_models.RemoveBannerStep(selectors=selectors):
            removed = await driver.remove_elements(selectors)
            log.debug("Removed banner elements", {"count": removed})
        case _:
            raise TypeError(f"Unsupported page step: {step!r}")


async def run_steps(driver: StepDriver, page_steps: Sequence[Any]) -> int:
    """Run *page_steps* in order and return how many succeeded."""
    succeeded = 0
    for index, step in enumerate(page_steps, start=1):
        try:
            await run_step(driver, step)
            succeeded += 1
        except Exception as exc:
            log.warn(
                f"Page step {index} failed",
                {"action": getattr(step, "action", "?"), "error": errors.get_error_message(exc)},
            )
    if page_steps:
        log.debug("Page steps complete", {"total": len(page_steps), "succeeded": succeeded})
    return succeeded
