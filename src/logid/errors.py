"""logid error code registry and exception hierarchy.

Every failure the core can surface is a ``LogidError`` subclass carrying:
- Code: LOGID-EXXX format
- Message: Human-readable description
- Next step: Actionable command or instruction
- Exit code: Stable process exit code for the CLI
"""
from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence


class ErrorCode(Enum):
    """logid error codes."""

    # Region errors (E001-E099)
    E001 = "E001"  # Unknown region identifier
    E002 = "E002"  # Region has no log service configured
    E003 = "E003"  # Missing session credential

    # Remote call errors (E100-E199)
    E100 = "E100"  # Token exchange failed
    E101 = "E101"  # Log query transport failure
    E102 = "E102"  # Log query response malformed

    # Local configuration errors (E200-E299)
    E200 = "E200"  # Filter rules file invalid
    E201 = "E201"  # Configuration value invalid


# 1 is an unclassified failure and 2 an argparse usage error.
EXIT_CODES: dict[ErrorCode, int] = {
    ErrorCode.E001: 3,
    ErrorCode.E002: 4,
    ErrorCode.E003: 5,
    ErrorCode.E100: 6,
    ErrorCode.E101: 7,
    ErrorCode.E102: 8,
    ErrorCode.E200: 9,
    ErrorCode.E201: 10,
}


# Pre-defined error templates
ERROR_TEMPLATES: dict[ErrorCode, tuple[str, str]] = {
    # (message_template, next_step)
    ErrorCode.E001: (
        "Unsupported region: {details}",
        "Use --region with one of the values listed by 'logid regions'",
    ),
    ErrorCode.E002: (
        "Region {details} has no log service configured",
        "Pick another region or ask the log platform team for the endpoint",
    ),
    ErrorCode.E003: (
        "Missing session credential: {details}",
        "Set it in the environment or .env, e.g. export CAS_SESSION_US=your_session_cookie",
    ),
    ErrorCode.E100: (
        "Token exchange failed: {details}",
        "Check that CAS_SESSION is still valid and the network is reachable",
    ),
    ErrorCode.E101: (
        "Log query failed: {details}",
        "Check the logid and network connectivity, then retry",
    ),
    ErrorCode.E102: (
        "Log service returned an unexpected response: {details}",
        "Run with ENABLE_LOGGING=true to inspect the response",
    ),
    ErrorCode.E200: (
        "Invalid filter rules: {details}",
        "Fix the rules file referenced by --filter-rules or LOGID_FILTER_RULES",
    ),
    ErrorCode.E201: (
        "Invalid configuration: {details}",
        "Fix the value in the environment, the .env file or on the command line",
    ),
}


@dataclass
class ErrorReport:
    """Structured error with code, message, and next step."""

    code: ErrorCode
    message: str
    next_step: str
    details: Optional[str] = None

    def __str__(self) -> str:
        lines = [
            f"LOGID-{self.code.value}: {self.message}",
        ]
        if self.details:
            lines.append(f"  Details: {self.details}")
        lines.append(f"  Next step: {self.next_step}")
        return "\n".join(lines)

    def print(self, file=None) -> None:
        """Print the report to stderr (or specified file)."""
        print(str(self), file=file or sys.stderr)


def make_report(code: ErrorCode, details: Optional[str] = None) -> ErrorReport:
    """Create an ErrorReport from a code with optional details.

    Args:
        code: The error code
        details: Optional details to include in the message

    Returns:
        ErrorReport instance ready to print
    """
    message_template, next_step = ERROR_TEMPLATES.get(
        code, ("Unknown error", "Run with --verbose for the full traceback")
    )

    if details and "{details}" in message_template:
        message = message_template.format(details=details)
    elif details:
        message = f"{message_template}: {details}"
    else:
        message = message_template.replace(": {details}", "").replace(" {details}", "")

    return ErrorReport(
        code=code,
        message=message,
        next_step=next_step,
        details=details if "{details}" not in message_template else None,
    )


class LogidError(Exception):
    """Base class for every classified failure of a query run."""

    code: ErrorCode = ErrorCode.E101

    def __init__(self, details: str) -> None:
        super().__init__(details)
        self.details = details

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.code]

    def report(self) -> ErrorReport:
        return make_report(self.code, self.details)


class UnknownRegionError(LogidError):
    """Raised when a region identifier is not in the registry."""

    code = ErrorCode.E001

    def __init__(self, identifier: str, valid: Sequence[str]) -> None:
        super().__init__(f"{identifier!r} (valid: {', '.join(valid)})")
        self.identifier = identifier
        self.valid = list(valid)


class RegionNotConfiguredError(LogidError):
    """Raised when a known region ships without a log service endpoint."""

    code = ErrorCode.E002

    def __init__(self, region: str) -> None:
        super().__init__(region)
        self.region = region


class AuthError(LogidError):
    """Failure while obtaining a bearer token for a region."""


class MissingCredentialError(AuthError):
    """No session credential is configured for the region."""

    code = ErrorCode.E003

    def __init__(self, region: str, searched: Sequence[str]) -> None:
        super().__init__(f"none of {', '.join(searched)} is set for region {region}")
        self.region = region
        self.searched = list(searched)


class ExchangeFailedError(AuthError):
    """The auth endpoint did not hand out a token.

    ``cause`` is one of ``transport``, ``timeout``, ``status`` or ``parse``.
    """

    code = ErrorCode.E100

    def __init__(
        self,
        region: str,
        cause: str,
        message: str,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(f"[{region}] {message}")
        self.region = region
        self.cause = cause
        self.status = status


class QueryError(LogidError):
    """Failure while querying a regional log service."""


class QueryTransportError(QueryError):
    """Transport failure, timeout or non-2xx status from the log service."""

    code = ErrorCode.E101

    def __init__(self, cause: str, message: str, status: Optional[int] = None) -> None:
        super().__init__(message if status is None else f"HTTP {status}: {message}")
        self.cause = cause
        self.status = status


class QueryMalformedError(QueryError):
    """The log service body does not match the tolerated schema."""

    code = ErrorCode.E102


class FilterConfigError(LogidError):
    """A filter rules file or rule definition is invalid."""

    code = ErrorCode.E200


class ConfigError(LogidError):
    """A configuration value from the environment, .env or CLI is invalid."""

    code = ErrorCode.E201


# Verbose mode flag (set by CLI)
_verbose_mode: bool = False


def set_verbose(verbose: bool) -> None:
    """Set verbose mode for error output."""
    global _verbose_mode
    _verbose_mode = verbose


def is_verbose() -> bool:
    """Check if verbose mode is enabled."""
    return _verbose_mode


def handle_error(exc: LogidError, file=None) -> int:
    """Print a classified error and return its exit code.

    In verbose mode, prints the full traceback as well.
    """
    import traceback

    exc.report().print(file=file)

    if _verbose_mode:
        print("\n--- Full Traceback ---", file=file or sys.stderr)
        traceback.print_exception(type(exc), exc, exc.__traceback__, file=file or sys.stderr)

    return exc.exit_code
