"""Pydantic models for browser navigation and form definitions."""

from __future__ import annotations

from typing import Any, Literal

import pydantic

from ga4_audit.utils import serialization


class NavigationResult(pydantic.BaseModel):
    """Result of a navigation attempt."""

    success: bool
    status_code: int | None
    status_text: str | None
    error_message: str | None


FieldType = Literal["text", "email", "tel", "radio", "checkbox", "select"]


class FieldCondition(pydantic.BaseModel):
    """A field that is only visible when another field holds a value."""

    model_config = pydantic.ConfigDict(alias_generator=serialization.snake_to_camel, populate_by_name=True)

    depends_on: str
    show_when: str


class FormField(pydantic.BaseModel):
    """One field of a form definition.

    ``valid`` / ``invalid`` may also be nested under ``testValues``.
    """

    model_config = pydantic.ConfigDict(
        alias_generator=serialization.snake_to_camel, populate_by_name=True, extra="ignore"
    )

    type: FieldType
    selector: str
    valid: Any = None
    invalid: Any = None
    required: bool = False
    options: list[str] = pydantic.Field(default_factory=list)
    conditional: FieldCondition | None = None

    @pydantic.model_validator(mode="before")
    @classmethod
    def _lift_test_values(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("testValues"), dict):
            lifted = {k: v for k, v in data["testValues"].items() if k in ("valid", "invalid")}
            data = {**data, **lifted}
        return data


class FormDefinition(pydantic.BaseModel):
    """A form under test, loaded from a user-supplied JSON file."""

    model_config = pydantic.ConfigDict(
        alias_generator=serialization.snake_to_camel, populate_by_name=True, extra="ignore"
    )

    name: str = ""
    page: str = ""
    form_selector: str = "form"
    submit_button_selector: str
    fields: dict[str, FormField] = pydantic.Field(default_factory=dict)
