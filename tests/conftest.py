"""Shared fixtures for the test suite."""

from __future__ import annotations

import pytest

from ga4_audit import config as config_mod


@pytest.fixture()
def config() -> config_mod.TrackerConfig:
    """Default configuration (click/form window 8000 ms, scroll 5000 ms)."""
    return config_mod.load_config()
