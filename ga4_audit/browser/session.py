"""
Browser session management for a single tracking run.
Each BrowserSession owns its own Playwright browser, page and capture
log, so several runs (API requests, batch sites) never share state.

Outgoing requests that match the configured analytics endpoints are
recorded as :class:`NetworkCapture` objects.  The run-wide capture
list only ever grows; phases that need an isolated view (the form
tester) open a scoped capture session instead of swapping listeners.
"""

from __future__ import annotations

import asyncio
import dataclasses
import itertools
import sys
import time
from typing import Literal

from playwright import async_api

from ga4_audit.config import TrackerConfig
from ga4_audit.models import actions, browser, capture
from ga4_audit.utils import logger
from ga4_audit.utils import url as url_mod

log = logger.create_logger("BrowserSession")

# ============================================================================
# Constants
# ============================================================================

MAX_CAPTURES = 5000

# Click errors that are retried as a DOM-level ``el.click()``.
_JS_CLICK_FALLBACK_MARKERS = ("outside of the viewport", "intercept")

_DESCRIBE_ELEMENT_JS = """el => {
    const cssFor = (node) => {
        let sel = node.tagName.toLowerCase();
        if (node.id) {
            sel = `#${node.id}`;
        } else if (typeof node.className === 'string' && node.className.trim()) {
            const classes = node.className.split(' ').filter(c => c.trim()).join('.');
            if (classes) sel = `${node.tagName.toLowerCase()}.${classes}`;
        }
        return sel;
    };
    return {
        tagName: el.tagName.toLowerCase(),
        textContent: (el.textContent || '').trim().replace(/\\s+/g, ' '),
        href: el.href || '',
        className: typeof el.className === 'string' ? el.className : '',
        id: el.id || '',
        selector: cssFor(el),
    };
}"""


@dataclasses.dataclass(frozen=True)
class CaptureHandle:
    """Identifies an open scoped capture session."""

    id: int
    opened_at: int


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class BrowserSession:
    """
    Manages an isolated browser session for one tracking run.
    """

    def __init__(self, config: TrackerConfig) -> None:
        """Initialise a new browser session with empty state."""
        self._config = config
        self._playwright: async_api.Playwright | None = None
        self._browser: async_api.Browser | None = None
        self._context: async_api.BrowserContext | None = None
        self._page: async_api.Page | None = None

        self._captures: list[capture.NetworkCapture] = []
        self._capture_sessions: dict[int, list[capture.NetworkCapture]] = {}
        self._session_ids = itertools.count(1)

    # ==========================================================================
    # State Getters
    # ==========================================================================

    def get_page(self) -> async_api.Page | None:
        """Return the active Playwright page, if any."""
        return self._page

    @property
    def current_url(self) -> str:
        return self._page.url if self._page else ""

    def now_ms(self) -> int:
        return now_ms()

    def get_captures(self) -> list[capture.NetworkCapture]:
        """Return a snapshot of every capture recorded in this session."""
        return list(self._captures)

    def _require_page(self) -> async_api.Page:
        if not self._page:
            raise RuntimeError("No browser session active")
        return self._page

    # ==========================================================================
    # Browser Lifecycle
    # ==========================================================================

    async def launch_browser(self, headless: bool | None = None) -> None:
        """Launch a Chromium instance and start capturing analytics requests."""
        general = self._config.general
        headless = self._config.headless if headless is None else headless
        log.info("Launching browser", {"headless": headless})

        await self.close()

        pw = await async_api.async_playwright().start()
        self._playwright = pw
        self._browser = await pw.chromium.launch(
            headless=headless,
            args=["--no-first-run", "--no-default-browser-check", "--disable-blink-features=AutomationControlled"],
        )
        self._context = await self._browser.new_context(
            viewport={"width": general.viewport_width, "height": general.viewport_height},
            user_agent=general.user_agent,
            java_script_enabled=True,
        )
        self._page = await self._context.new_page()
        self._page.set_default_timeout(general.browser_timeout_ms)
        self._page.on("request", self._on_request)
        log.debug(
            "Browser launched",
            {
                "viewport": f"{general.viewport_width}x{general.viewport_height}",
                "endpoints": len(general.capture_endpoints),
            },
        )

    def _on_request(self, request: async_api.Request) -> None:
        """Record requests bound for a configured analytics endpoint."""
        request_url = request.url
        if not url_mod.matches_endpoint(request_url, self._config.general.capture_endpoints):
            return
        if len(self._captures) >= MAX_CAPTURES:
            if len(self._captures) == MAX_CAPTURES:
                log.warn("Capture limit reached", {"limit": MAX_CAPTURES})
            return

        raw_body: str | None = None
        if request.method.upper() == "POST":
            try:
                raw_body = request.post_data
            except Exception:
                raw_body = None
        self.record_capture(
            capture.NetworkCapture(timestamp=now_ms(), url=request_url, method=request.method, raw_body=raw_body)
        )

    def record_capture(self, net: capture.NetworkCapture) -> None:
        """Append *net* to the run log and to every open capture session."""
        self._captures.append(net)
        for bucket in self._capture_sessions.values():
            bucket.append(net)
        log.debug("Captured analytics request", {"method": net.method, "url": net.url[:120]})

    # ==========================================================================
    # Scoped capture sessions
    # ==========================================================================

    def begin_capture_session(self) -> CaptureHandle:
        """Open a capture session that sees only requests made from now on."""
        handle = CaptureHandle(id=next(self._session_ids), opened_at=now_ms())
        self._capture_sessions[handle.id] = []
        return handle

    def end_capture_session(self, handle: CaptureHandle) -> list[capture.NetworkCapture]:
        """Close *handle* and return what it captured.

        Raises:
            KeyError: If the handle is unknown or already closed.
        """
        return self._capture_sessions.pop(handle.id)

    # ==========================================================================
    # Navigation
    # ==========================================================================

    async def navigate_to(
        self,
        url: str,
        wait_until: Literal["commit", "domcontentloaded", "load", "networkidle"] = "domcontentloaded",
        timeout: int | None = None,
    ) -> browser.NavigationResult:
        """Navigate the current page to a URL and wait for it to load."""
        page = self._require_page()
        timeout = timeout or self._config.general.browser_timeout_ms
        log.debug("Navigating", {"url": url, "waitUntil": wait_until, "timeout": timeout})
        try:
            response = await page.goto(url, wait_until=wait_until, timeout=timeout)
        except Exception as error:
            log.warn("Navigation error", {"url": url, "error": str(error)})
            return browser.NavigationResult(success=False, status_code=None, status_text=None, error_message=str(error))

        status_code = response.status if response else None
        status_text = response.status_text if response else None
        if status_code and status_code >= 400:
            return browser.NavigationResult(
                success=False,
                status_code=status_code,
                status_text=status_text,
                error_message=f"Server error ({status_code}: {status_text})",
            )
        if page.url != url:
            log.info("Redirected", {"from": url, "to": page.url})
        return browser.NavigationResult(
            success=True, status_code=status_code, status_text=status_text, error_message=None
        )

    async def reload(self, url: str | None = None) -> browser.NavigationResult:
        """Reload *url* (default: the current page) and let it settle."""
        result = await self.navigate_to(url or self.current_url)
        await self.wait_for_timeout(self._config.general.page_load_timeout_ms)
        return result

    async def wait_for_timeout(self, ms: int) -> None:
        """Wait for a specified number of milliseconds.

        Uses ``asyncio.sleep`` instead of Playwright's
        ``page.wait_for_timeout`` which is intended only
        for debugging.
        """
        await asyncio.sleep(ms / 1000)

    # ==========================================================================
    # Elements
    # ==========================================================================

    async def query_all(self, selector: str) -> list[async_api.ElementHandle]:
        return await self._require_page().query_selector_all(selector)

    async def has_selector(self, selector: str) -> bool:
        return await self._require_page().query_selector(selector) is not None

    async def describe_element(self, handle: async_api.ElementHandle) -> actions.ElementDescriptor:
        """Return tag, text, href and a CSS selector for *handle*."""
        info = await handle.evaluate(_DESCRIBE_ELEMENT_JS)
        return actions.ElementDescriptor.model_validate(info)

    async def matches_any(self, handle: async_api.ElementHandle, selectors: tuple[str, ...]) -> bool:
        """True when *handle* matches one of *selectors* (invalid selectors never match)."""
        return await handle.evaluate(
            "(el, sels) => sels.some(s => { try { return el.matches(s); } catch (e) { return false; } })",
            list(selectors),
        )

    async def is_in_navigation(self, handle: async_api.ElementHandle) -> bool:
        return await handle.evaluate("el => el.closest('header, nav, [role=\"navigation\"]') !== null")

    async def scroll_into_view(self, handle: async_api.ElementHandle, timeout: int | None = None) -> None:
        """Scroll *handle* into view, centring it when Playwright cannot."""
        timeout = timeout or self._config.click.timeout_ms
        try:
            await handle.scroll_into_view_if_needed(timeout=timeout)
            await handle.wait_for_element_state("stable", timeout=timeout)
        except Exception:
            await handle.evaluate("el => el.scrollIntoView({block: 'center', inline: 'center'})")
            await self.wait_for_timeout(500)

    async def click_element(self, handle: async_api.ElementHandle, timeout: int | None = None) -> None:
        """Click *handle*.

        Links are modifier-clicked so they open in a throw-away tab and
        the page under test stays put.  Viewport and interception errors
        fall back to a DOM ``click()``; other errors propagate.
        """
        page = self._require_page()
        timeout = timeout or self._config.click.timeout_ms
        try:
            info = await self.describe_element(handle)
            if info.tag_name == "a" and info.href:
                modifier = "Meta" if sys.platform == "darwin" else "Control"
                await handle.click(button="left", modifiers=[modifier], timeout=timeout)
                await self.wait_for_timeout(self._config.click.wait_after_click_ms)
                for other in page.context.pages:
                    if other is not page:
                        await other.close()
                await page.bring_to_front()
            else:
                await handle.click(timeout=timeout)
        except Exception as error:
            if any(marker in str(error) for marker in _JS_CLICK_FALLBACK_MARKERS):
                log.warn("Regular click failed, using JavaScript click", {"error": str(error)[:120]})
                await handle.evaluate("el => el.click()")
            else:
                raise

    async def click_selector(self, selector: str, timeout: int | None = None) -> None:
        await self._require_page().click(selector, timeout=timeout or self._config.click.timeout_ms)

    async def fill(self, selector: str, value: str, timeout: int | None = None) -> None:
        await self._require_page().fill(selector, value, timeout=timeout or self._config.form.timeout_ms)

    async def check(self, selector: str, timeout: int | None = None) -> None:
        await self._require_page().check(selector, timeout=timeout or self._config.form.timeout_ms)

    async def select_option(self, selector: str, value: str, timeout: int | None = None) -> None:
        await self._require_page().select_option(selector, value, timeout=timeout or self._config.form.timeout_ms)

    async def checked_value(self, selector: str) -> str | None:
        """Return the ``value`` of the checked input matching *selector*."""
        checked = await self._require_page().query_selector(f"{selector}:checked")
        if checked is None:
            return None
        return await checked.get_attribute("value")

    async def reveal_dropdown(self, handle: async_api.ElementHandle, selector: str) -> list[async_api.ElementHandle]:
        """Force hidden items under *handle*'s menu ``<li>`` visible and return them.

        Returns the clickable descendants (per *selector*) other than
        *handle* itself; empty when the element is not inside a list item.
        """
        await handle.evaluate(
            """el => {
                const li = el.closest('li');
                if (!li) return;
                li.querySelectorAll('*').forEach(node => {
                    const style = window.getComputedStyle(node);
                    if (style.display === 'none' || style.visibility === 'hidden') {
                        node.style.display = 'block';
                        node.style.visibility = 'visible';
                        node.style.opacity = '1';
                    }
                });
            }"""
        )
        await self.wait_for_timeout(300)
        container = (await handle.evaluate_handle("el => el.closest('li')")).as_element()
        if container is None:
            return []
        items = []
        for item in await container.query_selector_all(selector):
            if not await item.evaluate("(el, origin) => el === origin", handle):
                items.append(item)
        return items

    async def blur(self, selector: str) -> None:
        """Move focus out of *selector* so blur-bound tracking fires."""
        await self._require_page().evaluate(
            "sel => { const el = document.querySelector(sel); if (el) el.blur(); }", selector
        )

    async def remove_elements(self, selectors: tuple[str, ...]) -> int:
        """Remove every element matching *selectors*; returns the count."""
        return await self._require_page().evaluate(
            """sels => {
                let removed = 0;
                for (const s of sels) {
                    try {
                        document.querySelectorAll(s).forEach(el => { el.remove(); removed++; });
                    } catch (e) {}
                }
                return removed;
            }""",
            list(selectors),
        )

    # ==========================================================================
    # Scrolling
    # ==========================================================================

    async def get_page_height(self) -> int:
        return int(await self._require_page().evaluate("() => document.documentElement.scrollHeight"))

    async def scroll_to(self, y: int) -> None:
        await self._require_page().evaluate("y => window.scrollTo({top: y, behavior: 'instant'})", y)

    # ==========================================================================
    # Consent banners
    # ==========================================================================

    async def _click_if_present(self, selector: str, label: str) -> bool:
        page = self._require_page()
        button = await page.query_selector(selector)
        if not button:
            return False
        await button.click()
        log.success(f"Clicked {label}")
        await self.wait_for_timeout(self._config.general.network_wait_ms)
        return True

    async def dismiss_consent(self) -> bool:
        """Dismiss Pantheon and OneTrust banners.

        Failures are logged and never propagate; returns True when a
        OneTrust banner was handled.
        """
        consent = self._config.consent
        try:
            await self._click_if_present(consent.pantheon_dismiss_selector, "Pantheon dismiss button")
        except Exception as exc:
            log.warn("Error dismissing Pantheon banner", {"error": str(exc)})

        try:
            if await self._click_if_present(consent.accept_button_selector, "OneTrust accept button"):
                return True
            settings = await self._require_page().query_selector(consent.settings_button_selector)
            if settings:
                await settings.click()
                await self.wait_for_timeout(1000)
                if await self._click_if_present(consent.save_preferences_selector, "OneTrust save preferences"):
                    return True
                log.warn("OneTrust settings opened but no save button found")
        except Exception as exc:
            log.warn("Error handling cookie consent", {"error": str(exc)})
            return False

        log.info("No OneTrust cookie consent banner found")
        return False

    # ==========================================================================
    # Cleanup
    # ==========================================================================

    async def close(self) -> None:
        """Close the browser and release Playwright resources.

        The capture log is kept so reports can still be written.
        """
        if self._page:
            self._page.remove_listener("request", self._on_request)
            self._page = None

        if self._context:
            try:
                await self._context.close()
            except Exception as exc:
                log.debug("Context close error (non-fatal)", {"error": str(exc)})
            self._context = None

        if self._browser:
            try:
                await self._browser.close()
            except Exception as exc:
                log.debug("Browser close error (non-fatal)", {"error": str(exc)})
            self._browser = None

        if self._playwright:
            try:
                await self._playwright.stop()
            except Exception as exc:
                log.debug("Playwright stop error (non-fatal)", {"error": str(exc)})
            self._playwright = None
