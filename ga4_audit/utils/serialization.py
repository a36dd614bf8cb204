"""Shared serialization helpers for camelCase conversion.

Provides a single ``snake_to_camel`` implementation used by
Pydantic model configs, the JSON run artifact and SSE event
builders.
"""

from __future__ import annotations

import json
import pathlib
from typing import Any

import pydantic


def snake_to_camel(name: str) -> str:
    """Convert a snake_case string to camelCase.

    Args:
        name: A snake_case identifier such as
            ``"my_field_name"``.

    Returns:
        The camelCase equivalent, e.g. ``"myFieldName"``.
    """
    parts = name.split("_")
    return parts[0] + "".join(w.capitalize() for w in parts[1:])


def to_json_dict(model: pydantic.BaseModel) -> dict[str, Any]:
    """Dump *model* with camelCase aliases, ready for ``json.dumps``."""
    return model.model_dump(by_alias=True, mode="json")


def write_json_file(path: pathlib.Path, data: Any) -> pathlib.Path:
    """Write *data* as indented UTF-8 JSON, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    return path
