"""
Scroll phase: scroll to each configured depth threshold and attribute
the GA4 hits that follow.
"""

from __future__ import annotations

import math

from ga4_audit.models import actions
from ga4_audit.testers import base
from ga4_audit.utils import errors, logger

log = logger.create_logger("Scroll-Tester")


def scroll_positions(thresholds: tuple[int, ...], page_height: int, buffer_px: int) -> list[tuple[int, int]]:
    """Return ``(percentage, scroll_y)`` pairs for the unique sorted thresholds.

    ``scroll_y`` is the rounded share of *page_height* plus *buffer_px*
    so the page scrolls just past the threshold line.
    """
    return [(p, math.floor(p / 100 * page_height + 0.5) + buffer_px) for p in sorted(set(thresholds))]


class ScrollTester(base.PhaseTester):
    kind = "scroll"

    async def run(self) -> list[actions.Action]:
        session = self._session
        settings = self._config.scroll
        height = await session.get_page_height()
        positions = scroll_positions(settings.thresholds, height, settings.buffer_px)
        log.info("Starting scroll testing", {"pageHeight": height, "thresholds": len(positions)})

        recorded: list[actions.Action] = []
        for percentage, scroll_y in positions:
            action = self._action_log.begin(
                "scroll", session.now_ms(), scroll_percentage=percentage, scroll_y=scroll_y
            )
            try:
                await session.scroll_to(scroll_y)
                action.success = True
            except Exception as exc:
                action.failure_reason = errors.get_error_message(exc)
                log.warn(f"Scroll to {percentage}% failed", {"error": action.failure_reason})

            if action.success:
                await self._wait_window()
            recorded.append(self._finish(action, session.get_captures()))

        with_events = sum(1 for a in recorded if a.matched_events)
        log.success(f"Scroll testing complete: {with_events}/{len(recorded)} thresholds triggered events")
        return recorded
