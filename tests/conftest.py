"""logid test configuration and fixtures."""
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest

# Add src to path for imports
SRC_DIR = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(SRC_DIR))

from logid.regions import REGION_TABLE, Region, RegionConfig  # noqa: E402


class FakeClock:
    """Manually advanced clock for token expiry tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLogService:
    """Answers the regional auth and trace endpoints, recording every request.

    Auth requests get ``X-Jwt-Token`` headers from ``tokens`` in turn (the
    last one repeats). Query requests get ``query_body`` as JSON, or
    ``query_text`` verbatim when set.
    """

    def __init__(
        self,
        tokens: tuple[str, ...] = ("tok1",),
        query_body: Optional[dict[str, Any]] = None,
    ) -> None:
        self.tokens = list(tokens)
        self.query_body = query_body if query_body is not None else {"data": {"items": []}}
        self.query_text: Optional[str] = None
        self.auth_status = 200
        self.query_status = 200
        self.auth_error: Optional[Exception] = None
        self.query_error: Optional[Exception] = None
        self.auth_requests: list[httpx.Request] = []
        self.query_requests: list[httpx.Request] = []

    @property
    def requests(self) -> list[httpx.Request]:
        return self.auth_requests + self.query_requests

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/auth/api/v1/jwt"):
            self.auth_requests.append(request)
            if self.auth_error is not None:
                raise self.auth_error
            if self.auth_status != 200:
                return httpx.Response(self.auth_status, text="session expired")
            index = min(len(self.auth_requests), len(self.tokens)) - 1
            return httpx.Response(200, headers={"X-Jwt-Token": self.tokens[index]})

        self.query_requests.append(request)
        if self.query_error is not None:
            raise self.query_error
        if self.query_text is not None:
            return httpx.Response(self.query_status, text=self.query_text)
        return httpx.Response(self.query_status, json=self.query_body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def query_payload(self, index: int = -1) -> dict[str, Any]:
        return json.loads(self.query_requests[index].content)


def kv(key: str, value: Any, **extra: Any) -> dict[str, Any]:
    return {"key": key, "value": value, **extra}


def trace_body(
    *values: list[dict[str, Any]],
    psm: str = "svc.api",
    item_id: str = "item-1",
    wrapped: bool = True,
) -> dict[str, Any]:
    """Build a trace response with one item holding one value per kv list."""
    item = {
        "id": item_id,
        "group": {"psm": psm, "pod_name": "pod-1", "ipv4": "10.0.0.1", "env": "prod"},
        "value": [
            {"id": str(i), "level": "INFO", "kv_list": kv_list}
            for i, kv_list in enumerate(values)
        ],
    }
    payload = {"items": [item], "meta": {"level_list": ["INFO"], "scan_time_range": [{"start": 1, "end": 2}]}}
    return {"data": payload} if wrapped else payload


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_service() -> FakeLogService:
    return FakeLogService()


@pytest.fixture
def us_region() -> RegionConfig:
    return REGION_TABLE[Region.US]


@pytest.fixture
def make_trace_body() -> Callable[..., dict[str, Any]]:
    return trace_body


@pytest.fixture
def make_kv() -> Callable[..., dict[str, Any]]:
    return kv


@pytest.fixture
def us_env() -> dict[str, str]:
    return {"CAS_SESSION_US": "us-session-secret"}
