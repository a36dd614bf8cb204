"""
Window-based attribution of analytics captures to user actions.

After each action the tester waits a fixed delay window ``W``.  Every
capture whose timestamp ``t`` satisfies
``min_event_delay <= t - start <= W`` (both bounds inclusive) and
whose ``(timestamp, url)`` key is still unclaimed is claimed at once
and attributed to the action.  Because actions run sequentially and
claiming happens before the next window opens, the first action whose
window contains a capture wins and no capture is ever attributed
twice.

Scroll windows accept any GA4-endpoint capture, whether or not it
carries a scroll keyword, and ignore other endpoints.  Click windows
take every capture, then drop the parsed events whose name matches a
click-exclusion keyword (timers, pageviews, scroll and form lifecycle
hits).
"""

from __future__ import annotations

from collections.abc import Iterable

from ga4_audit.config import TrackerConfig
from ga4_audit.models import actions, ard, capture
from ga4_audit.parsing import classifier, payload
from ga4_audit.utils import logger

log = logger.create_logger("Attribution")


# ============================================================================
# Claimed keys
# ============================================================================


class ClaimRegistry:
    """The set of capture keys already attributed to an action.

    ``claim_all`` is the only writer and performs check-and-insert per
    key, so a key can be handed out at most once.
    """

    def __init__(self) -> None:
        self._keys: set[capture.CaptureKey] = set()

    def is_claimed(self, key: capture.CaptureKey) -> bool:
        return key in self._keys

    def claim_all(self, captures: Iterable[capture.NetworkCapture]) -> list[capture.NetworkCapture]:
        """Claim every unclaimed capture and return the ones claimed now."""
        claimed: list[capture.NetworkCapture] = []
        for net in captures:
            if net.key in self._keys:
                continue
            self._keys.add(net.key)
            claimed.append(net)
        return claimed

    @property
    def keys(self) -> frozenset[capture.CaptureKey]:
        return frozenset(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)


# ============================================================================
# Engine
# ============================================================================


class AttributionEngine:
    """Attributes captures to actions using per-kind delay windows."""

    def __init__(self, config: TrackerConfig, registry: ClaimRegistry | None = None) -> None:
        self._config = config
        self.registry = registry if registry is not None else ClaimRegistry()

    def in_window(self, timestamp: int, start: int, kind: actions.ActionKind) -> bool:
        """True when *timestamp* falls inside the window opened at *start*."""
        elapsed = timestamp - start
        return self._config.general.min_event_delay_ms <= elapsed <= self._config.window_ms(kind)

    def _accepts(self, net: capture.NetworkCapture, kind: actions.ActionKind) -> bool:
        if kind == "scroll":
            return classifier.is_ga4_capture(net, self._config)
        return True

    def collect_window(
        self,
        captures: Iterable[capture.NetworkCapture],
        start: int,
        kind: actions.ActionKind,
    ) -> list[capture.NetworkCapture]:
        """Claim and return the unclaimed captures inside the window.

        Args:
            captures: Every capture seen so far in the run.
            start: Action start timestamp (epoch ms).
            kind: Action kind, selecting the window length and the
                acceptance test.

        Returns:
            Newly claimed captures in timestamp order.
        """
        candidates = [
            net
            for net in sorted(captures, key=lambda c: c.timestamp)
            if self.in_window(net.timestamp, start, kind)
            and not self.registry.is_claimed(net.key)
            and self._accepts(net, kind)
        ]
        return self.registry.claim_all(candidates)

    def attribute_action(
        self,
        action: actions.Action,
        captures: Iterable[capture.NetworkCapture],
    ) -> actions.Action:
        """Fill ``matched_captures`` / ``matched_events`` on *action*.

        A failed action keeps empty matches and claims nothing.
        """
        if not action.success:
            action.matched_captures = []
            action.matched_events = []
            log.debug("Skipping attribution for failed action", {"id": action.id, "kind": action.kind})
            return action

        window = self.collect_window(captures, action.start_timestamp, action.kind)
        events = payload.extract_all(window, self._config)
        if action.kind == "click":
            kept = [e for e in events if not classifier.is_excluded_from_click_attribution(e, self._config)]
            if len(kept) != len(events):
                log.debug("Dropped excluded events from click", {"id": action.id, "dropped": len(events) - len(kept)})
            events = kept

        action.matched_captures = window
        action.matched_events = events
        action.end_timestamp = action.start_timestamp + self._config.window_ms(action.kind)

        if window:
            log.info(
                f"Attributed {len(events)} event(s) to {action.kind} #{action.id}",
                {"captures": len(window), "windowMs": self._config.window_ms(action.kind)},
            )
        else:
            log.debug(f"No captures in window for {action.kind} #{action.id}")
        return action


def attribute(
    captures: Iterable[capture.NetworkCapture],
    action_log: Iterable[actions.Action],
    registry: ClaimRegistry,
    config: TrackerConfig,
) -> None:
    """Retrospectively attribute *captures* to a whole action log.

    Actions are processed in start order (id breaks ties), so the
    outcome matches attributing each action live as it finished.
    Mutates the actions and *registry*.
    """
    engine = AttributionEngine(config, registry)
    pool = list(captures)
    for action in sorted(action_log, key=lambda a: (a.start_timestamp, a.id)):
        engine.attribute_action(action, pool)


# ============================================================================
# Trigger lookup
# ============================================================================


def find_trigger(
    event: capture.ParsedEvent | capture.NetworkCapture,
    action_list: Iterable[actions.Action],
) -> actions.Action | None:
    """Return the successful action whose matched captures contain *event*.

    Clicks are preferred over scroll and form actions.
    """
    key = event.capture_key if isinstance(event, capture.ParsedEvent) else event.key
    owners = [a for a in action_list if a.success and key in a.matched_keys]
    if not owners:
        return None
    clicks = [a for a in owners if a.kind == "click"]
    return (clicks or owners)[0]


def describe_trigger(action: actions.Action | None) -> str:
    """Render an action as a short trigger string; ``""`` for no action."""
    if action is None:
        return ""
    match action.kind:
        case "click":
            el = action.element or actions.ElementDescriptor()
            return f'click ({el.tag_name}: "{el.text_content}" - {el.selector})'
        case "scroll":
            return f"scroll ({action.scroll_percentage}%)"
        case "form":
            if action.form_field:
                return f"form ({action.form_scenario}: {action.form_field})"
            return f"form ({action.form_scenario})"
    return ""


def observed_events(
    captures: Iterable[capture.NetworkCapture],
    action_list: Iterable[actions.Action],
    config: TrackerConfig,
) -> list[ard.ObservedEvent]:
    """Every parsed event of the run, paired with its trigger description."""
    recorded = list(action_list)
    observed: list[ard.ObservedEvent] = []
    for net in captures:
        trigger = describe_trigger(find_trigger(net, recorded))
        for event in payload.extract_events(net, config):
            observed.append(
                ard.ObservedEvent(
                    event_name=event.event_name,
                    event_category=event.event_category,
                    event_action=event.event_action,
                    event_label=event.event_label,
                    link_url=event.link_url,
                    timestamp=event.source_capture_timestamp,
                    network_url=event.source_url,
                    trigger=trigger,
                )
            )
    return observed
