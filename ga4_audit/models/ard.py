"""Pydantic models for ARD rows, observed events and comparison results."""

from __future__ import annotations

from typing import Literal

import pydantic

from ga4_audit.utils import serialization

MatchedBy = Literal["event_name", "event_category", "none"]


class _CamelModel(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(alias_generator=serialization.snake_to_camel, populate_by_name=True)


class ExpectedEventSpec(_CamelModel):
    """One row of an Analytics Requirements Document.

    ``index`` is the row's position in the document and is the
    identity used for one-to-one matching, so duplicate rows stand
    for repeated required occurrences.
    """

    index: int
    name: str = ""
    event_category: str = ""
    event_action: str = ""
    event_label: str = ""
    link_url: str = ""
    file_name: str = ""
    trigger: str = ""
    raw_fields: dict[str, str] = pydantic.Field(default_factory=dict)


class ObservedEvent(_CamelModel):
    """An analytics event seen during a run, with the action that triggered it."""

    event_name: str = ""
    event_category: str = ""
    event_action: str = ""
    event_label: str = ""
    link_url: str = ""
    file_name: str = ""
    timestamp: int | None = None
    network_url: str = ""
    trigger: str = ""
    raw_fields: dict[str, str] = pydantic.Field(default_factory=dict)


class ParameterDiff(_CamelModel):
    """A single parameter whose observed value differs from the ARD."""

    parameter: str
    expected: str
    actual: str


class MatchingEntry(_CamelModel):
    event_name: str
    matched_by: MatchedBy
    observed: ObservedEvent
    expected: ExpectedEventSpec
    trigger: str = "Unknown"


class MismatchEntry(_CamelModel):
    event_name: str
    matched_by: MatchedBy
    observed: ObservedEvent
    expected: ExpectedEventSpec
    differences: list[ParameterDiff]


class ExtraEntry(_CamelModel):
    event_name: str
    matched_by: MatchedBy
    observed: ObservedEvent
    reason: str


class MissingEntry(_CamelModel):
    event_name: str
    expected: ExpectedEventSpec
    expected_trigger: str = "Unknown"


class ComparisonSummary(_CamelModel):
    total_expected: int = 0
    total_observed: int = 0
    match_count: int = 0
    missing_count: int = 0
    extra_count: int = 0
    mismatch_count: int = 0
    coverage_percent: int = 0


class ComparisonOutcome(_CamelModel):
    """Result of reconciling observed events against an ARD."""

    matching: list[MatchingEntry] = pydantic.Field(default_factory=list)
    missing: list[MissingEntry] = pydantic.Field(default_factory=list)
    extra: list[ExtraEntry] = pydantic.Field(default_factory=list)
    parameter_mismatch: list[MismatchEntry] = pydantic.Field(default_factory=list)
    summary: ComparisonSummary = pydantic.Field(default_factory=ComparisonSummary)
