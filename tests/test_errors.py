"""Tests for ga4_audit.utils.errors — taxonomy and message extraction."""

from __future__ import annotations

import pytest

from ga4_audit.utils.errors import (
    ActionExecutionError,
    ConfigurationError,
    FormPhaseError,
    Ga4AuditError,
    PayloadParseError,
    get_error_message,
)


class TestGetErrorMessage:
    """Tests for get_error_message()."""

    def test_exception_with_message(self) -> None:
        assert get_error_message(ValueError("something broke")) == "something broke"

    def test_exception_without_message(self) -> None:
        assert get_error_message(ValueError()) == "ValueError"

    def test_audit_error(self) -> None:
        assert get_error_message(FormPhaseError("form#contact not found")) == "form#contact not found"

    def test_non_exception(self) -> None:
        assert get_error_message("oops") == "Unknown error"


@pytest.mark.parametrize(
    "error_cls", [ConfigurationError, PayloadParseError, ActionExecutionError, FormPhaseError]
)
def test_all_errors_share_base(error_cls) -> None:
    assert issubclass(error_cls, Ga4AuditError)
