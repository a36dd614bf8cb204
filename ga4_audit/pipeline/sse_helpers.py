"""
Server-Sent Events formatting helpers.

Pure functions with no side-effects, shared by the streaming run and
the API routes.
"""

from __future__ import annotations

import json
from typing import Any

from ga4_audit.models import actions
from ga4_audit.pipeline import run
from ga4_audit.utils import serialization

# ====================================================================
# SSE Formatting
# ====================================================================


def format_sse_event(event_type: str, data: dict[str, Any]) -> str:
    """Format a Server-Sent Event string."""
    return f"event: {event_type}\ndata: {json.dumps(data)}\n\n"


def format_progress_event(step: str, message: str, progress: int) -> str:
    """Format a progress SSE event."""
    return format_sse_event(
        "progress",
        {"step": step, "message": message, "progress": progress},
    )


# ====================================================================
# Result payloads
# ====================================================================


def serialize_action(action: actions.Action) -> dict[str, Any]:
    """Compact camelCase view of an action for the client.

    Full capture bodies are left out; the JSON artifact carries those.
    """
    data = serialization.to_json_dict(action)
    data.pop("matchedCaptures", None)
    data["matchedEvents"] = [
        {"eventName": e.event_name, "eventCategory": e.event_category, "eventAction": e.event_action}
        for e in action.matched_events
    ]
    return data


def build_complete_event(result: run.RunResult) -> str:
    """Final ``complete`` event summarising a finished run."""
    return format_sse_event(
        "complete",
        {
            "success": True,
            "url": result.url,
            "durationMs": result.duration_ms,
            "totalCaptures": len(result.captures),
            "clicks": [serialize_action(a) for a in result.clicks],
            "scrolls": [serialize_action(a) for a in result.scrolls],
            "formActions": [serialize_action(a) for a in result.form_actions],
            "formError": result.form_error,
            "reports": [str(p) for p in result.report_paths],
        },
    )
