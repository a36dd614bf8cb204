"""Pydantic models for user actions and their attributed events."""

from __future__ import annotations

from typing import Literal

import pydantic

from ga4_audit.models import capture
from ga4_audit.utils import serialization

ActionKind = Literal["click", "scroll", "form"]

FormScenario = Literal[
    "individual_field",
    "valid_submission",
    "empty_submission",
    "invalid_submission",
]


class ElementDescriptor(pydantic.BaseModel):
    """Metadata describing the DOM element an action targeted."""

    model_config = pydantic.ConfigDict(alias_generator=serialization.snake_to_camel, populate_by_name=True)

    tag_name: str = ""
    text_content: str = ""
    href: str = ""
    selector: str = ""
    id: str = ""
    class_name: str = ""

    def label(self) -> str:
        """Short human-readable label used in logs."""
        return self.text_content or self.selector or self.tag_name or "element"


class Action(pydantic.BaseModel):
    """A click, scroll-threshold crossing or form interaction.

    Created immediately before the browser interaction.  After the
    delay window elapses, attribution fills ``matched_captures`` and
    ``matched_events``; a failed action keeps both empty and carries
    a ``failure_reason`` instead.
    """

    model_config = pydantic.ConfigDict(alias_generator=serialization.snake_to_camel, populate_by_name=True)

    id: int
    kind: ActionKind
    start_timestamp: int
    end_timestamp: int | None = None
    success: bool = False
    element: ElementDescriptor | None = None
    scroll_percentage: int | None = None
    scroll_y: int | None = None
    form_scenario: FormScenario | None = None
    form_field: str | None = None
    is_dropdown_item: bool = False
    matched_captures: list[capture.NetworkCapture] = pydantic.Field(default_factory=list)
    matched_events: list[capture.ParsedEvent] = pydantic.Field(default_factory=list)
    failure_reason: str | None = None

    @property
    def matched_keys(self) -> set[capture.CaptureKey]:
        """Keys of every capture attributed to this action."""
        return {c.key for c in self.matched_captures}
