"""Tests for logid.errors."""
from __future__ import annotations

import io

import pytest

from logid.errors import (
    EXIT_CODES,
    AuthError,
    ConfigError,
    ErrorCode,
    ExchangeFailedError,
    FilterConfigError,
    LogidError,
    MissingCredentialError,
    QueryError,
    QueryMalformedError,
    QueryTransportError,
    RegionNotConfiguredError,
    UnknownRegionError,
    handle_error,
    make_report,
    set_verbose,
)


class TestMakeReport:
    def test_details_substituted_into_message(self) -> None:
        report = make_report(ErrorCode.E001, "'eu'")
        assert report.message == "Unsupported region: 'eu'"
        assert report.details is None

    def test_without_details(self) -> None:
        report = make_report(ErrorCode.E102)
        assert report.message == "Log service returned an unexpected response"

    def test_str_format(self) -> None:
        text = str(make_report(ErrorCode.E003, "CAS_SESSION_US"))
        assert text.startswith("LOGID-E003: Missing session credential: CAS_SESSION_US")
        assert "Next step:" in text


class TestHierarchy:
    """Every classified error shares the base and has a distinct exit code."""

    def test_exit_codes_are_distinct(self) -> None:
        assert len(set(EXIT_CODES.values())) == len(EXIT_CODES)
        assert set(EXIT_CODES) == set(ErrorCode)

    def test_exit_codes_do_not_clash_with_usage_errors(self) -> None:
        # argparse exits 2 on usage errors; 1 is reserved for unclassified failures
        assert min(EXIT_CODES.values()) > 2

    @pytest.mark.parametrize(
        "exc, group, code",
        [
            (UnknownRegionError("eu", ["us", "i18n", "cn"]), LogidError, ErrorCode.E001),
            (RegionNotConfiguredError("cn"), LogidError, ErrorCode.E002),
            (MissingCredentialError("us", ["CAS_SESSION_US", "CAS_SESSION"]), AuthError, ErrorCode.E003),
            (ExchangeFailedError("us", "status", "HTTP 401", status=401), AuthError, ErrorCode.E100),
            (QueryTransportError("timeout", "timed out"), QueryError, ErrorCode.E101),
            (QueryMalformedError("$.items: required"), QueryError, ErrorCode.E102),
            (FilterConfigError("bad regex"), LogidError, ErrorCode.E200),
            (ConfigError("--timeout must be positive"), LogidError, ErrorCode.E201),
        ],
    )
    def test_classification(self, exc: LogidError, group: type, code: ErrorCode) -> None:
        assert isinstance(exc, group)
        assert isinstance(exc, LogidError)
        assert exc.code is code
        assert exc.exit_code == EXIT_CODES[code]

    def test_unknown_region_lists_valid_values(self) -> None:
        exc = UnknownRegionError("eu", ["us", "i18n", "cn"])
        assert exc.valid == ["us", "i18n", "cn"]
        assert "us, i18n, cn" in str(exc)

    def test_transport_error_carries_status(self) -> None:
        exc = QueryTransportError("status", "rejected", status=503)
        assert exc.status == 503
        assert str(exc) == "HTTP 503: rejected"


class TestHandleError:
    def test_prints_report_and_returns_exit_code(self) -> None:
        set_verbose(False)
        buf = io.StringIO()
        rc = handle_error(RegionNotConfiguredError("cn"), file=buf)
        assert rc == 4
        assert "LOGID-E002: Region cn has no log service configured" in buf.getvalue()
        assert "Traceback" not in buf.getvalue()

    def test_verbose_adds_traceback(self) -> None:
        set_verbose(True)
        try:
            try:
                raise QueryMalformedError("no items")
            except QueryMalformedError as e:
                buf = io.StringIO()
                handle_error(e, file=buf)
            assert "--- Full Traceback ---" in buf.getvalue()
        finally:
            set_verbose(False)
