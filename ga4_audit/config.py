"""
Run configuration for the GA4 audit tool.

Centralises every tunable the tracker uses (timing windows, endpoint
filters, selectors, keyword lists and the event-parameter alias
table) in a single immutable ``TrackerConfig``.  A config is built
once per process with :func:`load_config` and handed to each
component's constructor; nothing reads configuration from module
globals.

Uses ``pydantic_settings.BaseSettings`` for environment variable
binding (prefix ``GA4_AUDIT_``, nested groups separated by ``__``,
e.g. ``GA4_AUDIT_CLICK__EVENT_DELAY_MS=5000``).
"""

from __future__ import annotations

from typing import Any

import pydantic
import pydantic_settings

from ga4_audit.utils import errors

# ── Event parameter aliases ─────────────────────────────────────────
# Ordered per logical field; the first alias present in a payload wins.
EVENT_PARAM_ALIASES: dict[str, tuple[str, ...]] = {
    "event_name": ("en",),
    "event_category": ("ep.event_category", "ep.Event_Category", "event_category", "Event_Category"),
    "event_action": ("ep.event_action", "ep.Event_Action", "event_action", "Event_Action"),
    "event_location": ("ep.event_location", "ep.Event_Location", "event_location", "Event_Location"),
    "event_label": ("ep.event_label", "ep.Event_Label", "event_label", "Event_Label"),
    "link_classes": ("ep.link_classes", "ep.Link_Classes", "link_classes", "Link_Classes"),
    "link_url": ("ep.link_url", "ep.Link_URL", "link_url", "Link_URL"),
    "link_domain": ("ep.link_domain", "ep.Link_Domain", "link_domain", "Link_Domain"),
    "outbound": ("ep.outbound", "ep.Outbound", "outbound", "Outbound"),
    "full_url": ("ep.full_url", "ep.Full_URL", "full_url", "Full_URL", "dl"),
}

GA4_ENDPOINTS: tuple[str, ...] = (
    "https://www.google-analytics.com/g/collect",
    "https://analytics.google.com/g/collect",
)

_FROZEN = pydantic.ConfigDict(frozen=True)


class GeneralSettings(pydantic.BaseModel):
    """Browser, timing and network-filter settings shared by every phase."""

    model_config = _FROZEN

    viewport_width: int = 1280
    viewport_height: int = 720
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
        " (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    browser_timeout_ms: int = 30000
    page_load_timeout_ms: int = 5000
    network_wait_ms: int = 2000
    min_event_delay_ms: int = pydantic.Field(default=0, ge=0)
    ga4_endpoints: tuple[str, ...] = GA4_ENDPOINTS
    capture_endpoints: tuple[str, ...] = GA4_ENDPOINTS
    event_name_marker: str = "en="
    event_param_aliases: dict[str, tuple[str, ...]] = pydantic.Field(
        default_factory=lambda: dict(EVENT_PARAM_ALIASES)
    )


class ClickSettings(pydantic.BaseModel):
    """Click phase settings."""

    model_config = _FROZEN

    event_delay_ms: int = pydantic.Field(default=8000, gt=0)
    timeout_ms: int = 5000
    wait_after_click_ms: int = 100
    max_elements: int | None = None
    selectors: tuple[str, ...] = (
        "a",
        "button",
        'input[type="button"]',
        '[role="button"]',
        "[onclick]",
        ".btn",
        ".button",
    )
    exclude_keywords: tuple[str, ...] = (
        "timer",
        "user_engagement",
        "pageview",
        "page_view",
        "page view",
        "scroll",
        "scroll depth",
        "scroll_depth",
        "form_start",
        "form_field",
        "form_submission",
        "form_error",
    )


class ScrollSettings(pydantic.BaseModel):
    """Scroll-threshold phase settings."""

    model_config = _FROZEN

    event_delay_ms: int = pydantic.Field(default=5000, gt=0)
    timeout_ms: int = 1000
    thresholds: tuple[int, ...] = (10, 20, 25, 30, 40, 50, 60, 70, 75, 80, 90, 100)
    buffer_px: int = 20
    event_keywords: tuple[str, ...] = ("scroll", "scroll_depth", "scroll_percentage")


class FormSettings(pydantic.BaseModel):
    """Form phase settings."""

    model_config = _FROZEN

    field_fill_delay_ms: int = 8000
    blur_delay_ms: int = 1000
    submit_delay_ms: int = 5000
    event_delay_ms: int = pydantic.Field(default=8000, gt=0)
    timeout_ms: int = 2000
    individual_fields: bool = True
    valid_submission: bool = True
    empty_submission: bool = True
    invalid_submission: bool = True


class ConsentSettings(pydantic.BaseModel):
    """Consent banner selectors and elements excluded from click testing."""

    model_config = _FROZEN

    accept_button_selector: str = "#onetrust-accept-btn-handler"
    settings_button_selector: str = ".ot-sdk-show-settings"
    save_preferences_selector: str = ".save-preference-btn-handler"
    pantheon_dismiss_selector: str = ".pds-button"
    exclude_selectors: tuple[str, ...] = (
        "#ot-sdk-btn",
        ".ot-link-btn",
        "#onetrust-accept-btn-handler",
        "#onetrust-reject-all-handler",
        ".onetrust-close-btn-handler",
        ".onetrust-accept-btn-handler",
        ".ot-floating-button__open",
        ".ot-floating-button__close",
        ".ot-fltr-btns button",
        ".ot-pc-footer-logo a",
        "#ot-pc-content button",
        "#ot-pc-content a",
        "#ot-pc-desc a",
        "#ot-pc-desc button",
    )


class PhaseSettings(pydantic.BaseModel):
    """Which test phases a run performs."""

    model_config = _FROZEN

    click: bool = True
    scroll: bool = True
    forms: bool = True


class ReportSettings(pydantic.BaseModel):
    """Which report artifacts are written and where."""

    model_config = _FROZEN

    output_dir: str = "test-results"
    csv: bool = True
    json_artifact: bool = True
    comparison_json: bool = True
    log_file: bool = False


class BatchSettings(pydantic.BaseModel):
    """Batch runner settings."""

    model_config = _FROZEN

    inter_site_delay_ms: int = 5000


class TrackerConfig(pydantic_settings.BaseSettings):
    """Immutable configuration for one tracker process.

    Attributes:
        headless: Launch the browser without a visible window.
        general: Shared browser, timing and endpoint settings.
        click: Click phase settings.
        scroll: Scroll phase settings.
        form: Form phase settings.
        consent: Consent banner handling.
        phases: Enabled phases.
        reports: Report output settings.
        batch: Batch runner settings.
    """

    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix="GA4_AUDIT_",
        env_nested_delimiter="__",
        frozen=True,
        extra="ignore",
    )

    headless: bool = False
    general: GeneralSettings = pydantic.Field(default_factory=GeneralSettings)
    click: ClickSettings = pydantic.Field(default_factory=ClickSettings)
    scroll: ScrollSettings = pydantic.Field(default_factory=ScrollSettings)
    form: FormSettings = pydantic.Field(default_factory=FormSettings)
    consent: ConsentSettings = pydantic.Field(default_factory=ConsentSettings)
    phases: PhaseSettings = pydantic.Field(default_factory=PhaseSettings)
    reports: ReportSettings = pydantic.Field(default_factory=ReportSettings)
    batch: BatchSettings = pydantic.Field(default_factory=BatchSettings)

    def window_ms(self, kind: str) -> int:
        """Return the attribution delay window for an action *kind*."""
        windows = {
            "click": self.click.event_delay_ms,
            "scroll": self.scroll.event_delay_ms,
            "form": self.form.event_delay_ms,
        }
        if kind not in windows:
            raise ValueError(f"Unknown action kind {kind!r}")
        return windows[kind]


def load_config(**overrides: Any) -> TrackerConfig:
    """Build the process-wide configuration.

    Keyword arguments override environment values; nested groups
    may be given as dicts (``click={"event_delay_ms": 5000}``).

    Raises:
        ConfigurationError: If a value fails validation.
    """
    try:
        return TrackerConfig(**overrides)
    except pydantic.ValidationError as exc:
        raise errors.ConfigurationError(f"Invalid configuration: {exc}") from exc


def with_click_pause(config: TrackerConfig, pause_ms: int | None) -> TrackerConfig:
    """Return a copy of *config* whose click window is *pause_ms*."""
    if pause_ms is None:
        return config
    if pause_ms <= 0:
        raise errors.ConfigurationError(f"Click pause must be positive, got {pause_ms}")
    return config.model_copy(update={"click": config.click.model_copy(update={"event_delay_ms": pause_ms})})


def with_max_clicks(config: TrackerConfig, max_clicks: int | None) -> TrackerConfig:
    """Return a copy of *config* that tests at most *max_clicks* elements."""
    if max_clicks is None:
        return config
    if max_clicks <= 0:
        raise errors.ConfigurationError(f"Max clicks must be positive, got {max_clicks}")
    return config.model_copy(update={"click": config.click.model_copy(update={"max_elements": max_clicks})})
