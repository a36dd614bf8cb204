"""
Loader for user-supplied JSON configuration: form definitions, page
step scripts and batch site lists.

Form definitions are looked up by path first, then by name in the
user forms directory, then among the samples shipped in ``forms/``
next to this module.  Every failure surfaces as a
``ConfigurationError`` so the CLI can exit before any browser work.
"""

from __future__ import annotations

import json
import pathlib
from typing import Any

import pydantic

from ga4_audit.models import browser, run, steps
from ga4_audit.utils import errors, logger

log = logger.create_logger("Config-Loader")

# Resolve path to the data directory (same directory as this module)
_DATA_DIR = pathlib.Path(__file__).resolve().parent

# ============================================================================
# JSON File Loading
# ============================================================================


def load_json_file(path: str | pathlib.Path) -> Any:
    """Load and parse a JSON file.

    Raises:
        ConfigurationError: If the file is missing or is not UTF-8 JSON.
    """
    full_path = pathlib.Path(path)
    if not full_path.is_file():
        raise errors.ConfigurationError(f"Config file not found: {full_path}")
    try:
        with open(full_path, encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as exc:
        raise errors.ConfigurationError(f"Invalid JSON in {full_path}: {exc.msg} (line {exc.lineno})") from exc
    except UnicodeDecodeError as exc:
        raise errors.ConfigurationError(f"Config file {full_path} is not UTF-8: {exc.reason}") from exc


def _validate(model: type[pydantic.BaseModel], data: Any, source: pathlib.Path | str) -> Any:
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise errors.ConfigurationError(f"Malformed config in {source}: {exc}") from exc


# ============================================================================
# Form definitions
# ============================================================================


def packaged_forms() -> list[str]:
    """Names of the sample form definitions shipped with the package."""
    return sorted(p.stem for p in (_DATA_DIR / "forms").glob("*.json"))


def resolve_form_path(ref: str, forms_dir: str | pathlib.Path | None = None) -> pathlib.Path:
    """Find the JSON file a ``--form-config`` reference points at."""
    direct = pathlib.Path(ref)
    if direct.is_file():
        return direct

    name = ref if ref.endswith(".json") else f"{ref}.json"
    candidates = []
    if forms_dir is not None:
        candidates.append(pathlib.Path(forms_dir) / name)
    candidates.append(_DATA_DIR / "forms" / name)
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    raise errors.ConfigurationError(
        f"Form config {ref!r} not found (available samples: {', '.join(packaged_forms()) or 'none'})"
    )


def load_form_definition(ref: str, forms_dir: str | pathlib.Path | None = None) -> browser.FormDefinition:
    path = resolve_form_path(ref, forms_dir)
    definition = _validate(browser.FormDefinition, load_json_file(path), path)
    log.info("Loaded form definition", {"form": definition.name or path.stem, "fields": len(definition.fields)})
    return definition


# ============================================================================
# Step scripts
# ============================================================================


def load_step_script(path: str | pathlib.Path) -> tuple[list[Any], list[Any]]:
    """Load ``{"preTest": [...], "afterRefresh": [...]}`` into typed steps.

    Returns:
        ``(pre_test_steps, after_refresh_steps)``.
    """
    data = load_json_file(path)
    if not isinstance(data, dict):
        raise errors.ConfigurationError(f"Step script {path} must be a JSON object")
    try:
        return steps.parse_steps(data.get("preTest")), steps.parse_steps(data.get("afterRefresh"))
    except pydantic.ValidationError as exc:
        raise errors.ConfigurationError(f"Invalid step in {path}: {exc}") from exc


# ============================================================================
# Batch site lists
# ============================================================================


def load_batch_config(path: str | pathlib.Path) -> run.BatchConfigFile:
    data = load_json_file(path)
    config = _validate(run.BatchConfigFile, data, path)
    if not config.sites:
        raise errors.ConfigurationError(f"No sites defined in {path}")
    return config
