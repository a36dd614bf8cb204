"""
Console logger for tracking runs.

Every module gets a context-prefixed logger from ``create_logger``.
Lines carry a timestamp, a level symbol and optional ``key=value``
data, and go to stderr. A run may also mirror its lines, stripped of
colour, into ``<output_dir>/logs/<host>_<timestamp>.log`` when
``reports.log_file`` is enabled.

Timers and the open log file live in ``contextvars`` so concurrent
SSE streams in the API server each keep their own.
"""

from __future__ import annotations

import contextvars
import io
import os
import pathlib
import re
import sys
import time
from datetime import UTC, datetime

# ============================================================================
# Per-run state
# ============================================================================

_timers_var: contextvars.ContextVar[dict[str, tuple[float, str]]] = contextvars.ContextVar("_timers_var")
_run_log_var: contextvars.ContextVar[io.TextIOWrapper | None] = contextvars.ContextVar("_run_log_var", default=None)

_ANSI_RE = re.compile(r"\033\[[0-9;]*m")

_debug_enabled = os.environ.get("GA4_AUDIT_QUIET", "").lower() != "true"


def set_debug(enabled: bool) -> None:
    """Show or hide debug lines for the rest of the process."""
    global _debug_enabled
    _debug_enabled = enabled


def _get_timers() -> dict[str, tuple[float, str]]:
    try:
        return _timers_var.get()
    except LookupError:
        timers: dict[str, tuple[float, str]] = {}
        _timers_var.set(timers)
        return timers


def reset_timers() -> None:
    """Forget timers left running by a previous run in this context."""
    _get_timers().clear()


# ============================================================================
# Run log files
# ============================================================================


def log_file_name(host: str, started: datetime) -> str:
    """Return ``<host>_<YYYY-mm-dd_HH-MM-SS>.log`` with *host* made path-safe."""
    name = host.removeprefix("www.")
    safe = "".join(c if c.isalnum() or c in ".-" else "_" for c in name)[:50] or "run"
    return f"{safe}_{started.strftime('%Y-%m-%d_%H-%M-%S')}.log"


def start_log_file(host: str, logs_dir: pathlib.Path | None) -> pathlib.Path | None:
    """Mirror this context's log lines into a new file under *logs_dir*.

    Does nothing when *logs_dir* is ``None``. Returns the file path, or
    ``None`` when no file was opened.
    """
    end_log_file()
    if logs_dir is None:
        return None

    started = datetime.now(UTC)
    path = logs_dir / log_file_name(host, started)
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        stream = open(path, "a", encoding="utf-8")  # noqa: SIM115
    except OSError as exc:
        print(f"\033[31m✗ [Logger] Cannot open run log {path}: {exc}\033[0m", file=sys.stderr)
        return None

    _run_log_var.set(stream)
    rule = "=" * 80
    stream.write(f"{rule}\n  GA4 tracking run - {host}\n  Started: {started.isoformat()}\n{rule}\n")
    print(f"\033[36mℹ [Logger] Run log: {path}\033[0m", file=sys.stderr)
    return path


def end_log_file() -> None:
    """Flush and close this context's run log, if one is open."""
    stream = _run_log_var.get(None)
    if stream is None:
        return
    _run_log_var.set(None)
    try:
        stream.close()
    except OSError:
        print("\033[33m⚠ [Logger] Failed to close run log\033[0m", file=sys.stderr)


def _emit(line: str) -> None:
    print(line, file=sys.stderr)
    stream = _run_log_var.get(None)
    if stream is not None:
        stream.write(_ANSI_RE.sub("", line) + "\n")
        stream.flush()


# ============================================================================
# Formatting
# ============================================================================

RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
CYAN = "\033[36m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
RED = "\033[31m"
MAGENTA = "\033[35m"
BLUE = "\033[34m"
GRAY = "\033[90m"

# level -> (colour, symbol)
_LEVELS: dict[str, tuple[str, str]] = {
    "info": (CYAN, "ℹ"),
    "success": (GREEN, "✓"),
    "warn": (YELLOW, "⚠"),
    "error": (RED, "✗"),
    "debug": (GRAY, "•"),
    "timing": (MAGENTA, "⏱"),
}


def _clock() -> str:
    now = datetime.now(UTC)
    return now.strftime("%H:%M:%S.") + f"{now.microsecond // 1000:03d}"


def format_duration(ms: float) -> str:
    """Format a duration in milliseconds, e.g. ``850ms``, ``8.00s``, ``2m 5.0s``."""
    if ms < 1000:
        return f"{int(ms)}ms"
    if ms < 60000:
        return f"{ms / 1000:.2f}s"
    minutes = int(ms // 60000)
    return f"{minutes}m {(ms % 60000) / 1000:.1f}s"


def _format_value(value: object) -> str:
    match value:
        case None:
            return f"{DIM}None{RESET}"
        case bool():
            return f"{GREEN if value else RED}{value}{RESET}"
        case int() | float():
            return f"{YELLOW}{value}{RESET}"
        case str():
            shown = value if len(value) <= 200 else value[:197] + "..."
            return f'{GREEN}"{shown}"{RESET}'
        case list() | tuple():
            return f"{CYAN}[{len(value)} items]{RESET}"
        case dict():
            return f"{CYAN}{{{len(value)} keys}}{RESET}"
    return str(value)


# ============================================================================
# Logger
# ============================================================================


class Logger:
    """Context-prefixed logger with timers and section headers."""

    def __init__(self, context: str = "GA4-Audit") -> None:
        self._context = context

    def _log(self, level: str, message: str, data: dict[str, object] | None = None) -> None:
        if level == "debug" and not _debug_enabled:
            return
        colour, symbol = _LEVELS.get(level, _LEVELS["info"])
        line = f"{GRAY}[{_clock()}]{RESET} {colour}{symbol}{RESET} {BOLD}[{self._context}]{RESET} {message}"
        if data:
            line += " " + " ".join(f"{DIM}{k}={RESET}{_format_value(v)}" for k, v in data.items())
        _emit(line)

    def info(self, message: str, data: dict[str, object] | None = None) -> None:
        self._log("info", message, data)

    def success(self, message: str, data: dict[str, object] | None = None) -> None:
        self._log("success", message, data)

    def warn(self, message: str, data: dict[str, object] | None = None) -> None:
        self._log("warn", message, data)

    def error(self, message: str, data: dict[str, object] | None = None) -> None:
        self._log("error", message, data)

    def debug(self, message: str, data: dict[str, object] | None = None) -> None:
        """Log a debug line; hidden when ``GA4_AUDIT_QUIET=true`` or ``--quiet``."""
        self._log("debug", message, data)

    def start_timer(self, label: str) -> None:
        """Start the timer *label*, scoped to this logger's context."""
        _get_timers()[f"{self._context}:{label}"] = (time.monotonic() * 1000, _clock())
        self._log("timing", f"Starting: {label}")

    def end_timer(self, label: str, message: str | None = None) -> float:
        """Stop the timer *label* and log how long it ran.

        Returns:
            Elapsed milliseconds, or ``0.0`` if the timer was never started.
        """
        entry = _get_timers().pop(f"{self._context}:{label}", None)
        if entry is None:
            self.warn(f'Timer "{label}" was not started')
            return 0.0
        started_ms, started_at = entry
        elapsed = time.monotonic() * 1000 - started_ms
        self._log(
            "timing",
            f"{message or f'Completed: {label}'} {DIM}took{RESET} "
            f"{MAGENTA}{format_duration(elapsed)}{RESET} {DIM}(started {started_at}){RESET}",
        )
        return elapsed

    def section(self, title: str) -> None:
        """Print a banner for a run or phase."""
        rule = f"{BLUE}{'─' * 60}{RESET}"
        for line in ("", rule, f"{BLUE}{BOLD}  {title}{RESET}", rule, ""):
            _emit(line)

    def subsection(self, title: str) -> None:
        _emit(f"\n{CYAN}  ▸ {title}{RESET}")


def create_logger(context: str) -> Logger:
    """Create a logger whose lines are prefixed with ``[context]``."""
    return Logger(context)
