"""
Shared plumbing for the click, scroll and form testers.

Every tester follows the same protocol: begin an action, perform it,
wait the kind's delay window, attribute, then record the action.
Actions run strictly one after another so windows never overlap.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ga4_audit.attribution import action_log as action_log_mod
from ga4_audit.attribution import engine as engine_mod
from ga4_audit.config import TrackerConfig
from ga4_audit.models import actions, capture


class PhaseTester:
    """Base class holding the collaborators every phase needs."""

    kind: actions.ActionKind

    def __init__(
        self,
        session: Any,
        config: TrackerConfig,
        action_log: action_log_mod.ActionLog,
        engine: engine_mod.AttributionEngine,
        after_refresh_steps: Sequence[Any] = (),
    ) -> None:
        self._session = session
        self._config = config
        self._action_log = action_log
        self._engine = engine
        self._after_refresh_steps = list(after_refresh_steps)

    async def _wait_window(self) -> None:
        await self._session.wait_for_timeout(self._config.window_ms(self.kind))

    def _finish(self, action: actions.Action, captures: Sequence[capture.NetworkCapture]) -> actions.Action:
        """Attribute *captures* to *action* and append it to the log."""
        self._engine.attribute_action(action, captures)
        self._action_log.record(action)
        return action
