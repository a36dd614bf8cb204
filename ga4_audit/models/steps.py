"""Scripted page steps run before testing and after each reload.

A step list is declared in JSON, e.g.::

    [{"action": "wait", "time": 2000},
     {"action": "click", "selector": "#close-popup"},
     {"action": "type", "selector": "#zip", "value": "10001"},
     {"action": "removeCookieBanner"}]

The bare string ``"wait"`` is accepted as a one-second wait.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

import pydantic


class WaitStep(pydantic.BaseModel):
    action: Literal["wait"] = "wait"
    time: int = 1000


class ClickStep(pydantic.BaseModel):
    action: Literal["click"] = "click"
    selector: str


class TypeStep(pydantic.BaseModel):
    action: Literal["type"] = "type"
    selector: str
    value: str = ""


class RemoveBannerStep(pydantic.BaseModel):
    action: Literal["removeCookieBanner"] = "removeCookieBanner"
    selectors: tuple[str, ...] = (
        "#onetrust-banner-sdk",
        ".cookie-banner",
        '[class*="cookie"]',
        '[id*="cookie"]',
    )


PageStep = Annotated[
    WaitStep | ClickStep | TypeStep | RemoveBannerStep,
    pydantic.Field(discriminator="action"),
]

_STEP_LIST = pydantic.TypeAdapter(list[PageStep])


def parse_steps(raw: Any) -> list[WaitStep | ClickStep | TypeStep | RemoveBannerStep]:
    """Validate a JSON step list into typed steps.

    Raises:
        pydantic.ValidationError: If a step has an unknown ``action``
            or is missing a required field, or if *raw* is not a list.
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        return _STEP_LIST.validate_python(raw)
    items = [{"action": "wait"} if item == "wait" else item for item in raw]
    return _STEP_LIST.validate_python(items)
