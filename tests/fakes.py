"""Factories and an in-memory browser session used across the tests."""

from __future__ import annotations

import itertools
from typing import Any

from ga4_audit import config as config_mod
from ga4_audit.browser import session as browser_session
from ga4_audit.models import actions, browser, capture

GA4_URL = "https://www.google-analytics.com/g/collect?v=2&tid=G-TEST123"
OTHER_URL = "https://www.example.com/api/beacon"
START_MS = 1_700_000_000_000


# ── Factories ───────────────────────────────────────────────────


def make_capture(timestamp: int, body: str | None = None, url: str = GA4_URL) -> capture.NetworkCapture:
    return capture.NetworkCapture(timestamp=timestamp, url=url, method="POST" if body else "GET", raw_body=body)


def make_event(name: str = "", *, timestamp: int = START_MS, url: str = GA4_URL, **fields: Any) -> capture.ParsedEvent:
    return capture.ParsedEvent(
        source_capture_timestamp=timestamp,
        source_url=url,
        event_name=name,
        raw_segment=fields.pop("raw_segment", f"en={name}"),
        **fields,
    )


def make_click(
    action_id: int, start: int, *, success: bool = True, text: str = "Home", selector: str = "nav > a"
) -> actions.Action:
    return actions.Action(
        id=action_id,
        kind="click",
        start_timestamp=start,
        success=success,
        element=actions.ElementDescriptor(tag_name="a", text_content=text, selector=selector, href="/home"),
    )


# ── Fake browser ────────────────────────────────────────────────


class FakeElement:
    """Stand-in for a Playwright element handle."""

    def __init__(
        self,
        text: str,
        *,
        tag: str = "a",
        selector: str | None = None,
        hits: tuple[tuple[int, str], ...] = (),
        fail: bool = False,
        excluded: bool = False,
        describe_error: bool = False,
    ) -> None:
        self.text = text
        self.tag = tag
        self.selector = selector or f"#{text.lower().replace(' ', '-')}"
        self.hits = hits
        self.fail = fail
        self.excluded = excluded
        self.describe_error = describe_error


class FakeSession:
    """In-memory browser session driven by a virtual clock.

    Interactions schedule analytics hits at ``clock + delay``; waiting
    advances the clock and delivers every hit that has come due, to the
    global capture list and to each open capture session.
    """

    def __init__(
        self,
        config: config_mod.TrackerConfig | None = None,
        *,
        elements: list[FakeElement] | None = None,
        page_height: int = 1000,
        scroll_hits: dict[int, tuple[tuple[int, str], ...]] | None = None,
        selector_hits: dict[str, tuple[tuple[int, str], ...]] | None = None,
        present: set[str] | None = None,
        nav_ok: bool = True,
    ) -> None:
        self.clock = START_MS
        self.elements = list(elements or [])
        self.page_height = page_height
        self.scroll_hits = scroll_hits or {}
        self.selector_hits = selector_hits or {}
        self.present = set(present or ())
        self.nav_ok = nav_ok
        self.current_url = ""
        self.calls: list[tuple[str, Any]] = []
        self.closed = False
        self._pending: list[capture.NetworkCapture] = []
        self._captures: list[capture.NetworkCapture] = []
        self._sessions: dict[int, list[capture.NetworkCapture]] = {}
        self._ids = itertools.count(1)

    # clock and captures

    def now_ms(self) -> int:
        return self.clock

    def emit(self, hits: tuple[tuple[int, str], ...], url: str = GA4_URL) -> None:
        for delay, body in hits:
            self._pending.append(make_capture(self.clock + delay, body, url))

    def _deliver(self) -> None:
        due = sorted((c for c in self._pending if c.timestamp <= self.clock), key=lambda c: c.timestamp)
        self._pending = [c for c in self._pending if c.timestamp > self.clock]
        for net in due:
            self._captures.append(net)
            for bucket in self._sessions.values():
                bucket.append(net)

    async def wait_for_timeout(self, ms: int) -> None:
        self.clock += ms
        self._deliver()

    def get_captures(self) -> list[capture.NetworkCapture]:
        return list(self._captures)

    def begin_capture_session(self) -> browser_session.CaptureHandle:
        handle = browser_session.CaptureHandle(id=next(self._ids), opened_at=self.clock)
        self._sessions[handle.id] = []
        return handle

    def end_capture_session(self, handle: browser_session.CaptureHandle) -> list[capture.NetworkCapture]:
        return self._sessions.pop(handle.id, [])

    # lifecycle

    async def launch_browser(self, headless: bool | None = None) -> None:
        self.calls.append(("launch", headless))

    async def navigate_to(self, url: str, wait_until: str = "domcontentloaded", timeout: int | None = None):
        self.calls.append(("navigate", url))
        if not self.nav_ok:
            return browser.NavigationResult(
                success=False, status_code=None, status_text=None, error_message="net::ERR_NAME_NOT_RESOLVED"
            )
        self.current_url = url
        return browser.NavigationResult(success=True, status_code=200, status_text="OK", error_message=None)

    async def reload(self, url: str | None = None):
        self.calls.append(("reload", url))
        await self.wait_for_timeout(10)
        return browser.NavigationResult(success=True, status_code=200, status_text="OK", error_message=None)

    async def dismiss_consent(self) -> bool:
        self.calls.append(("consent", None))
        return False

    async def close(self) -> None:
        self.closed = True

    # elements

    async def query_all(self, selector: str) -> list[FakeElement]:
        return list(self.elements)

    async def has_selector(self, selector: str) -> bool:
        return selector in self.present

    async def describe_element(self, handle: FakeElement) -> actions.ElementDescriptor:
        if handle.describe_error:
            raise RuntimeError("Element is detached from document")
        return actions.ElementDescriptor(tag_name=handle.tag, text_content=handle.text, selector=handle.selector)

    async def matches_any(self, handle: FakeElement, selectors: tuple[str, ...]) -> bool:
        return handle.excluded

    async def is_in_navigation(self, handle: FakeElement) -> bool:
        return False

    async def scroll_into_view(self, handle: FakeElement, timeout: int | None = None) -> None:
        pass

    async def click_element(self, handle: FakeElement, timeout: int | None = None) -> None:
        self.calls.append(("click", handle.text))
        if handle.fail:
            raise RuntimeError("Element is not visible")
        self.emit(handle.hits)

    # form primitives

    async def click_selector(self, selector: str, timeout: int | None = None) -> None:
        self.calls.append(("click_selector", selector))
        self.emit(self.selector_hits.get(selector, ()))

    async def fill(self, selector: str, value: str, timeout: int | None = None) -> None:
        self.calls.append(("fill", (selector, value)))
        self.emit(self.selector_hits.get(selector, ()))

    async def check(self, selector: str, timeout: int | None = None) -> None:
        self.calls.append(("check", selector))
        self.emit(self.selector_hits.get(selector, ()))

    async def select_option(self, selector: str, value: str, timeout: int | None = None) -> None:
        self.calls.append(("select", (selector, value)))

    async def checked_value(self, selector: str) -> str | None:
        return None

    async def blur(self, selector: str) -> None:
        self.calls.append(("blur", selector))

    async def remove_elements(self, selectors: tuple[str, ...]) -> int:
        self.calls.append(("remove", selectors))
        return 0

    # scrolling

    async def get_page_height(self) -> int:
        return self.page_height

    async def scroll_to(self, y: int) -> None:
        self.calls.append(("scroll", y))
        self.emit(self.scroll_hits.get(y, ()))
