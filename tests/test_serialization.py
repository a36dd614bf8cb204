"""Tests for ga4_audit.utils.serialization."""

from __future__ import annotations

import json

import pytest

from ga4_audit.models import actions
from ga4_audit.utils.serialization import snake_to_camel, to_json_dict, write_json_file

# ── snake_to_camel ──────────────────────────────────────────────


class TestSnakeToCamel:
    """Tests for snake_to_camel()."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("event_name", "eventName"),
            ("total_network_events", "totalNetworkEvents"),
            ("url", "url"),
        ],
    )
    def test_conversion(self, name: str, expected: str) -> None:
        assert snake_to_camel(name) == expected


# ── to_json_dict ────────────────────────────────────────────────


class TestToJsonDict:
    """Tests for to_json_dict()."""

    def test_uses_aliases(self) -> None:
        element = actions.ElementDescriptor(tag_name="a", text_content="Home")
        result = to_json_dict(element)
        assert result["tagName"] == "a"
        assert result["textContent"] == "Home"
        assert "tag_name" not in result


# ── write_json_file ─────────────────────────────────────────────


class TestWriteJsonFile:
    """Tests for write_json_file()."""

    def test_creates_parents(self, tmp_path) -> None:
        path = write_json_file(tmp_path / "a" / "b.json", {"label": "Café"})
        assert json.loads(path.read_text(encoding="utf-8")) == {"label": "Café"}
        assert "Café" in path.read_text(encoding="utf-8")
