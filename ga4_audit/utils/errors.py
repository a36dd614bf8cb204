"""
Error taxonomy and helpers for consistent error message extraction.

Only ``ConfigurationError`` is fatal; it is raised before any browser
work starts and maps to a non-zero exit code in the CLI.  The other
errors are caught at the phase or action that raised them and
recorded on the run result.
"""


class Ga4AuditError(Exception):
    """Base class for all errors raised by the audit tool."""


class ConfigurationError(Ga4AuditError):
    """Missing files, missing arguments or malformed JSON config."""


class PayloadParseError(Ga4AuditError):
    """An analytics payload could not be decoded."""


class ActionExecutionError(Ga4AuditError):
    """A click, scroll or form interaction could not be performed."""


class FormPhaseError(Ga4AuditError):
    """The form under test is missing or a required selector is absent."""


def get_error_message(error: BaseException | object) -> str:
    """
    Safely extract an error message from an unknown error type.
    """
    if isinstance(error, Exception):
        return str(error) or error.__class__.__name__
    return "Unknown error"
