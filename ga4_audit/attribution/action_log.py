"""
Append-only log of the actions performed during a run.

Actions are created with :meth:`ActionLog.begin` just before the
browser interaction and appended with :meth:`ActionLog.record` once
attribution has run.  Ids are allocated sequentially per log, so the
log order is the chronological order of action starts.
"""

from __future__ import annotations

from typing import Any

from ga4_audit.models import actions
from ga4_audit.utils import logger

log = logger.create_logger("Action-Log")


class ActionLog:
    """Ordered, append-only record of :class:`Action` objects."""

    def __init__(self) -> None:
        self._actions: list[actions.Action] = []
        self._recorded_ids: set[int] = set()
        self._next_id = 1

    # ==========================================================================
    # Writing
    # ==========================================================================

    def begin(self, kind: actions.ActionKind, timestamp: int, **details: Any) -> actions.Action:
        """Allocate a new action of *kind* starting at *timestamp* (epoch ms).

        Extra keyword arguments populate the remaining ``Action`` fields
        (``element``, ``scroll_percentage``, ``form_scenario`` ...).
        """
        action = actions.Action(id=self._next_id, kind=kind, start_timestamp=timestamp, **details)
        self._next_id += 1
        return action

    def record(self, action: actions.Action) -> None:
        """Append a finished action.

        Raises:
            ValueError: If an action with the same id was already recorded.
        """
        if action.id in self._recorded_ids:
            raise ValueError(f"Action {action.id} has already been recorded")
        self._recorded_ids.add(action.id)
        self._actions.append(action)
        log.debug(
            "Action recorded",
            {"id": action.id, "kind": action.kind, "success": action.success, "events": len(action.matched_events)},
        )

    # ==========================================================================
    # Reading
    # ==========================================================================

    @property
    def actions(self) -> tuple[actions.Action, ...]:
        return tuple(self._actions)

    def __len__(self) -> int:
        return len(self._actions)

    def __iter__(self):
        return iter(tuple(self._actions))

    def successful(self) -> list[actions.Action]:
        return [a for a in self._actions if a.success]

    def failed(self) -> list[actions.Action]:
        return [a for a in self._actions if not a.success]

    def by_kind(self, kind: actions.ActionKind) -> list[actions.Action]:
        return [a for a in self._actions if a.kind == kind]

    def summary(self) -> dict[str, int]:
        """Counts used in the run metadata and end-of-run log line."""
        clicks = self.by_kind("click")
        scrolls = self.by_kind("scroll")
        return {
            "total": len(self._actions),
            "clicks": len(clicks),
            "successful_clicks": sum(1 for a in clicks if a.success),
            "failed_clicks": sum(1 for a in clicks if not a.success),
            "scrolls": len(scrolls),
            "scrolls_with_events": sum(1 for a in scrolls if a.matched_events),
            "form_actions": len(self.by_kind("form")),
            "matched_events": sum(len(a.matched_events) for a in self._actions),
        }
