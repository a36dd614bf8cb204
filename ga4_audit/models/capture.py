"""Pydantic models for intercepted analytics requests and parsed events."""

from __future__ import annotations

from typing import Literal

import pydantic

from ga4_audit.utils import serialization

EncodingSource = Literal["POST", "URL"]

CaptureKey = tuple[int, str]


class NetworkCapture(pydantic.BaseModel):
    """An outgoing request that matched a configured analytics endpoint.

    Immutable once captured.  ``timestamp`` is epoch milliseconds.
    """

    model_config = pydantic.ConfigDict(
        alias_generator=serialization.snake_to_camel, populate_by_name=True, frozen=True
    )

    timestamp: int
    url: str
    method: str = "GET"
    raw_body: str | None = None

    @property
    def key(self) -> CaptureKey:
        """The ``(timestamp, url)`` identity used for claim de-duplication."""
        return (self.timestamp, self.url)


class ParsedEvent(pydantic.BaseModel):
    """A single analytics hit decoded from a :class:`NetworkCapture`."""

    model_config = pydantic.ConfigDict(
        alias_generator=serialization.snake_to_camel, populate_by_name=True, frozen=True
    )

    source_capture_timestamp: int
    source_url: str
    event_name: str = ""
    event_category: str = ""
    event_action: str = ""
    event_label: str = ""
    event_location: str = ""
    link_classes: str = ""
    link_url: str = ""
    link_domain: str = ""
    outbound: str = ""
    full_url: str = ""
    raw_segment: str = ""
    line_index: int = 1
    encoding_source: EncodingSource = "POST"
    raw_params: dict[str, str | None] = pydantic.Field(default_factory=dict)

    @property
    def capture_key(self) -> CaptureKey:
        """Key of the capture this event was parsed from."""
        return (self.source_capture_timestamp, self.source_url)

    @property
    def is_outbound(self) -> bool:
        """True when the outbound flag carries a truthy value."""
        return self.outbound.strip().lower() in ("true", "1", "yes")
