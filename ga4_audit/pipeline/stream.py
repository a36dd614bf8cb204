"""
Streaming tracking run.

Wraps :class:`TrackingRun` so each stage is announced as an SSE
``progress`` event, and the run ends with either a ``complete`` event
or an ``error`` event.  Each call creates its own browser session.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Sequence
from typing import Any

from ga4_audit.config import TrackerConfig
from ga4_audit.models import browser
from ga4_audit.pipeline import run, sse_helpers
from ga4_audit.utils import errors, logger

log = logger.create_logger("Track-Stream")

# Outer wall-clock limit for a streamed run.  A full click phase on a
# large page can take a long time, so this is generous.
STREAM_TIMEOUT_SECONDS = 2 * 60 * 60


async def track_url_stream(
    url: str,
    config: TrackerConfig,
    *,
    form_definition: browser.FormDefinition | None = None,
    pre_test_steps: Sequence[Any] = (),
    after_refresh_steps: Sequence[Any] = (),
    session_factory: run.SessionFactory | None = None,
    timeout_seconds: float = STREAM_TIMEOUT_SECONDS,
) -> AsyncGenerator[str]:
    """Run a tracking run and stream its progress via SSE strings."""
    if not url:
        yield sse_helpers.format_sse_event("error", {"error": "URL is required"})
        return

    tracking = run.TrackingRun(
        url,
        config,
        form_definition=form_definition,
        pre_test_steps=pre_test_steps,
        after_refresh_steps=after_refresh_steps,
        session_factory=session_factory,
    )
    logger.reset_timers()
    tracking.open_log_file()
    log.section(f"Tracking: {url}")
    log.start_timer("tracking-stream")

    try:
        async with asyncio.timeout(timeout_seconds):
            async for step, message, progress in tracking.stages():
                yield sse_helpers.format_progress_event(step, message, progress)

        log.end_timer("tracking-stream", "Tracking run complete")
        yield sse_helpers.format_progress_event("complete", "Tracking complete!", 100)
        yield sse_helpers.build_complete_event(tracking.result())

    except TimeoutError:
        message = f"Tracking run timed out after {int(timeout_seconds // 60)} minutes"
        log.error("Tracking run timed out", {"timeoutSeconds": timeout_seconds})
        tracking.errors.append(message)
        tracking.write_fallback_reports()
        yield sse_helpers.format_sse_event("error", {"error": message})
    except Exception as error:
        message = errors.get_error_message(error)
        log.error("Tracking run failed with exception", {"error": message})
        tracking.errors.append(message)
        tracking.write_fallback_reports()
        yield sse_helpers.format_sse_event("error", {"error": message})
    finally:
        log.debug("Cleaning up browser resources...")
        await tracking.close()
        logger.end_log_file()
