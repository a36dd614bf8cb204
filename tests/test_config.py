"""Tests for ga4_audit.config — defaults, overrides and validation."""

from __future__ import annotations

import pydantic
import pytest

from ga4_audit import config as config_mod
from ga4_audit.utils import errors

# ── defaults ────────────────────────────────────────────────────


class TestDefaults:
    """Tests for TrackerConfig defaults."""

    def test_windows(self, config) -> None:
        assert config.window_ms("click") == 8000
        assert config.window_ms("scroll") == 5000
        assert config.window_ms("form") == 8000
        assert config.general.min_event_delay_ms == 0

    def test_unknown_kind(self, config) -> None:
        with pytest.raises(ValueError, match="Unknown action kind"):
            config.window_ms("hover")

    def test_browser_is_headed(self, config) -> None:
        assert config.headless is False

    def test_reports(self, config) -> None:
        assert config.reports.output_dir == "test-results"
        assert config.reports.csv and config.reports.json_artifact

    def test_is_frozen(self, config) -> None:
        with pytest.raises(pydantic.ValidationError):
            config.headless = True


# ── load_config ─────────────────────────────────────────────────


class TestOverrides:
    """Tests for load_config() overrides and validation."""

    def test_nested_dict_override(self) -> None:
        cfg = config_mod.load_config(click={"event_delay_ms": 3000}, phases={"forms": False})
        assert cfg.window_ms("click") == 3000
        assert cfg.phases.forms is False
        assert cfg.phases.click is True

    def test_env_override(self, monkeypatch) -> None:
        monkeypatch.setenv("GA4_AUDIT_CLICK__EVENT_DELAY_MS", "4500")
        monkeypatch.setenv("GA4_AUDIT_HEADLESS", "true")
        cfg = config_mod.load_config()
        assert cfg.click.event_delay_ms == 4500
        assert cfg.headless is True

    def test_invalid_value(self) -> None:
        with pytest.raises(errors.ConfigurationError, match="Invalid configuration"):
            config_mod.load_config(scroll={"event_delay_ms": 0})

    def test_negative_min_delay(self) -> None:
        with pytest.raises(errors.ConfigurationError):
            config_mod.load_config(general={"min_event_delay_ms": -1})


# ── with_click_pause ────────────────────────────────────────────


class TestWithClickPause:
    """Tests for with_click_pause()."""

    def test_none_keeps_config(self, config) -> None:
        assert config_mod.with_click_pause(config, None) is config

    def test_sets_click_window_only(self, config) -> None:
        cfg = config_mod.with_click_pause(config, 2500)
        assert cfg.window_ms("click") == 2500
        assert cfg.window_ms("form") == 8000
        assert config.window_ms("click") == 8000

    @pytest.mark.parametrize("pause", [0, -5])
    def test_rejects_non_positive(self, config, pause: int) -> None:
        with pytest.raises(errors.ConfigurationError, match="must be positive"):
            config_mod.with_click_pause(config, pause)


# ── with_max_clicks ─────────────────────────────────────────────


class TestWithMaxClicks:
    """Tests for with_max_clicks()."""

    def test_none_keeps_config(self, config) -> None:
        assert config_mod.with_max_clicks(config, None) is config

    def test_sets_element_limit(self, config) -> None:
        assert config_mod.with_max_clicks(config, 4).click.max_elements == 4

    @pytest.mark.parametrize("max_clicks", [0, -1])
    def test_rejects_non_positive(self, config, max_clicks: int) -> None:
        with pytest.raises(errors.ConfigurationError, match="Max clicks must be positive"):
            config_mod.with_max_clicks(config, max_clicks)
