"""
Click phase: click every discoverable element and attribute the
analytics hits that follow each click.

The page is reloaded before every click after the first so each click
starts from the same state, and the after-refresh steps are replayed.
Navigation menu items revealed by a click are tested immediately,
without a reload, and flagged as dropdown items.
"""

from __future__ import annotations

from typing import Any

from ga4_audit.browser import steps
from ga4_audit.models import actions
from ga4_audit.testers import base
from ga4_audit.utils import errors, logger

log = logger.create_logger("Click-Tester")

_UNKNOWN_ELEMENT = actions.ElementDescriptor(tag_name="unknown", selector="unknown")


def _identity(element: actions.ElementDescriptor) -> tuple[str, str, str]:
    return (element.selector, element.text_content, element.href)


class ClickTester(base.PhaseTester):
    """Runs the click phase against the current page."""

    kind = "click"

    @property
    def _selector(self) -> str:
        return ", ".join(self._config.click.selectors)

    def estimate_ms(self, element_count: int) -> int:
        """Rough wall-clock estimate: first click, then reload + click per element."""
        if element_count <= 0:
            return 0
        per_click = self._config.general.page_load_timeout_ms + self._config.click.event_delay_ms
        return self._config.click.event_delay_ms + (element_count - 1) * per_click

    async def run(self) -> list[actions.Action]:
        """Click each element in document order; returns the recorded actions."""
        page_url = self._session.current_url
        elements = await self._session.query_all(self._selector)
        total = len(elements)
        if self._config.click.max_elements is not None:
            total = min(total, self._config.click.max_elements)
        log.info(
            f"Found {len(elements)} clickable elements",
            {"testing": total, "estimate": logger.format_duration(self.estimate_ms(total))},
        )

        known: set[tuple[str, str, str]] = set()
        recorded: list[actions.Action] = []
        for index in range(total):
            if index > 0:
                await self._session.reload(page_url)
                await steps.run_steps(self._session, self._after_refresh_steps)
                elements = await self._session.query_all(self._selector)
                if index >= len(elements):
                    log.warn("Element no longer present after reload", {"index": index + 1})
                    continue

            handle = elements[index]
            action = await self.test_element(handle, index)
            if action is None:
                continue
            recorded.append(action)
            if action.element:
                known.add(_identity(action.element))
            if action.success:
                recorded.extend(await self._test_dropdown(handle, known))

        log.success(
            "Click testing complete",
            {"successful": sum(1 for a in recorded if a.success), "failed": sum(1 for a in recorded if not a.success)},
        )
        return recorded

    async def test_element(self, handle: Any, index: int, *, is_dropdown_item: bool = False) -> actions.Action | None:
        """Click one element and attribute its hits.

        Returns ``None`` for consent-manager elements, which are skipped.
        A click that raises yields a failed action and consumes no window.
        """
        session = self._session
        try:
            element = await session.describe_element(handle)
        except Exception as exc:
            action = self._action_log.begin(
                "click",
                session.now_ms(),
                element=_UNKNOWN_ELEMENT,
                is_dropdown_item=is_dropdown_item,
                failure_reason=f"Failed to evaluate element: {errors.get_error_message(exc)}",
            )
            return self._finish(action, [])

        try:
            if await session.matches_any(handle, self._config.consent.exclude_selectors):
                log.debug("Skipping consent-manager element", {"selector": element.selector})
                return None
        except Exception as exc:
            log.debug("Exclusion check failed", {"error": errors.get_error_message(exc)})

        log.subsection(f"Click {index + 1}: {element.label()[:60]}")
        action = self._action_log.begin("click", session.now_ms(), element=element, is_dropdown_item=is_dropdown_item)
        try:
            await session.scroll_into_view(handle)
            await session.click_element(handle)
            action.success = True
        except Exception as exc:
            action.failure_reason = errors.get_error_message(exc)
            log.warn(f"Failed to click element {index + 1}", {"error": action.failure_reason})

        if action.success:
            await self._wait_window()
        return self._finish(action, session.get_captures())

    async def _test_dropdown(self, handle: Any, known: set[tuple[str, str, str]]) -> list[actions.Action]:
        """Test menu items revealed under a navigation element."""
        session = self._session
        try:
            if not await session.is_in_navigation(handle):
                return []
            await session.wait_for_timeout(500)
            items = await session.reveal_dropdown(handle, self._selector)
        except Exception as exc:
            log.debug("Dropdown discovery failed", {"error": errors.get_error_message(exc)})
            return []

        fresh = []
        for item in items:
            try:
                element = await session.describe_element(item)
            except Exception:
                continue
            if _identity(element) in known:
                continue
            known.add(_identity(element))
            fresh.append(item)
        if not fresh:
            return []

        log.info(f"Testing {len(fresh)} dropdown item(s) while visible")
        tested = []
        for offset, item in enumerate(fresh):
            action = await self.test_element(item, offset, is_dropdown_item=True)
            if action is not None:
                tested.append(action)
        return tested
