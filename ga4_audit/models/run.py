"""Pydantic models for the persisted run artifact and batch summaries.

The JSON artifact (``metadata`` / ``networkEvents`` / ``clickEvents``)
is the contract other tools read back, most notably the ARD
``compare`` command, so field names are stable camelCase.
"""

from __future__ import annotations

from typing import Literal

import pydantic

from ga4_audit.models import actions
from ga4_audit.utils import serialization


class _CamelModel(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(alias_generator=serialization.snake_to_camel, populate_by_name=True)


# ── Run artifact ────────────────────────────────────────────────────


class RunMetadata(_CamelModel):
    url: str
    timestamp: str
    total_network_events: int = 0
    total_extracted_events: int = 0
    total_clicks: int = 0
    successful_clicks: int = 0
    failed_clicks: int = 0
    total_scrolls: int = 0
    scrolls_with_events: int = 0
    total_form_actions: int = 0
    errors: list[str] = pydantic.Field(default_factory=list)


class NetworkEventRecord(_CamelModel):
    """One parsed event flattened together with its originating capture."""

    network_event_index: int
    timestamp: int
    url: str
    method: str
    post_data: str | None = None
    event_name: str = ""
    event_category: str = ""
    event_action: str = ""
    event_label: str = ""
    event_location: str = ""
    link_classes: str = ""
    link_url: str = ""
    link_domain: str = ""
    outbound: str = ""
    source: str = "POST"
    raw_data: str = ""
    line: int = 1
    trigger: str = ""


class CaptureRef(_CamelModel):
    timestamp: int
    url: str


class ClickEventRecord(_CamelModel):
    """A click action as persisted in the artifact."""

    id: int
    timestamp: int
    element: actions.ElementDescriptor | None = None
    success: bool
    error: str | None = None
    matched_network_events: int = 0
    matched_captures: list[CaptureRef] = pydantic.Field(default_factory=list)
    is_dropdown_item: bool = False


class RunReport(_CamelModel):
    metadata: RunMetadata
    network_events: list[NetworkEventRecord] = pydantic.Field(default_factory=list)
    click_events: list[ClickEventRecord] = pydantic.Field(default_factory=list)


# ── Batch ───────────────────────────────────────────────────────────

SiteStatus = Literal["success", "failed", "skipped"]


class SiteOptions(_CamelModel):
    """Per-site overrides from a batch config file."""

    model_config = pydantic.ConfigDict(
        alias_generator=serialization.snake_to_camel, populate_by_name=True, extra="ignore"
    )

    click_pause: int | None = None
    form_config: str | None = None
    max_clicks: int | None = None
    phases: dict[str, bool] | None = None


class SiteEntry(_CamelModel):
    model_config = pydantic.ConfigDict(
        alias_generator=serialization.snake_to_camel, populate_by_name=True, extra="ignore"
    )

    name: str
    base_url: str
    enabled: bool = True
    options: SiteOptions = pydantic.Field(default_factory=SiteOptions)


class BatchConfigFile(_CamelModel):
    model_config = pydantic.ConfigDict(extra="ignore")

    sites: list[SiteEntry]


class SiteResult(_CamelModel):
    name: str
    base_url: str
    status: SiteStatus
    duration_ms: int = 0
    timestamp: str = ""
    error: str | None = None
    report_paths: list[str] = pydantic.Field(default_factory=list)


class BatchSummary(_CamelModel):
    config_file: str
    start_time: str
    end_time: str = ""
    total_duration_ms: int = 0
    total: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    sites: list[SiteResult] = pydantic.Field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Completed sites as a percentage of all sites."""
        return (self.completed / self.total * 100) if self.total else 0.0

    @property
    def average_duration_ms(self) -> float:
        """Mean duration over every site that ran."""
        ran = [s for s in self.sites if s.status != "skipped"]
        return sum(s.duration_ms for s in ran) / len(ran) if ran else 0.0
