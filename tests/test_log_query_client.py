"""Tests for the regional log query client."""
from __future__ import annotations

import asyncio

import httpx
import pytest

from logid.auth.token import Token
from logid.errors import QueryMalformedError, QueryTransportError
from logid.filters import FilterChain
from logid.log_query.client import LogQueryClient


@pytest.fixture
def token() -> Token:
    return Token("bearer-abc", issued_at=0.0)


class TestRequest:
    @pytest.mark.asyncio
    async def test_body_and_header(self, fake_service, us_region, token) -> None:
        client = LogQueryClient(fake_service.client())
        await client.query(us_region, token, "abc-123", ["svc.api"])

        request = fake_service.query_requests[0]
        assert request.method == "POST"
        assert str(request.url) == us_region.query_url
        assert request.headers["X-Jwt-Token"] == "bearer-abc"
        assert fake_service.query_payload() == {
            "logid": "abc-123",
            "psm_list": ["svc.api"],
            "scan_span_in_min": 10,
            "vregion": "US-TTP,US-TTP2",
        }

    @pytest.mark.asyncio
    async def test_psm_list_omitted_when_empty(self, fake_service, us_region, token) -> None:
        client = LogQueryClient(fake_service.client())
        await client.query(us_region, token, "abc-123", ["  ", ""])
        assert "psm_list" not in fake_service.query_payload()

    def test_psm_filters_deduplicated(self, us_region) -> None:
        client = LogQueryClient(httpx.AsyncClient())
        request = client.build_request(us_region, "abc", ["b", "a", "b", " a "])
        assert request.psm_list == ("b", "a")


class TestResult:
    @pytest.mark.asyncio
    async def test_unified_result(self, fake_service, us_region, token, make_trace_body, make_kv) -> None:
        fake_service.query_body = make_trace_body(
            [make_kv("_msg", "hello")],
            [make_kv("_msg", "drop me"), make_kv("_compliance_nlp_log", "1")],
        )
        result = await LogQueryClient(fake_service.client()).query(us_region, token, "abc-123")

        assert result.logid == "abc-123"
        assert result.region == "us"
        assert result.region_display_name == "US"
        assert result.total_items == len(result.messages) == 1
        assert result.messages[0].value_of("_msg") == "hello"
        assert result.level_list == ["INFO"]
        assert result.scan_time_range == [{"start": 1, "end": 2}]
        assert result.timestamp.endswith("+00:00")

    @pytest.mark.asyncio
    async def test_psm_rechecked_client_side(self, fake_service, us_region, token, make_trace_body, make_kv) -> None:
        body = make_trace_body([make_kv("_msg", "from api")], psm="svc.api")
        other = make_trace_body([make_kv("_msg", "from worker")], psm="svc.worker", item_id="item-2")
        body["data"]["items"].extend(other["data"]["items"])
        fake_service.query_body = body

        result = await LogQueryClient(fake_service.client()).query(us_region, token, "abc", ["svc.api"])

        assert [m.group.psm for m in result.messages] == ["svc.api"]
        assert result.psm_filters == ("svc.api",)

    @pytest.mark.asyncio
    async def test_no_psm_filter_keeps_all(self, fake_service, us_region, token, make_trace_body, make_kv) -> None:
        body = make_trace_body([make_kv("_msg", "a")], psm="one")
        body["data"]["items"].extend(make_trace_body([make_kv("_msg", "b")], psm="two", item_id="i2")["data"]["items"])
        fake_service.query_body = body

        result = await LogQueryClient(fake_service.client()).query(us_region, token, "abc")
        assert result.total_items == 2

    @pytest.mark.asyncio
    async def test_custom_filter_chain(self, fake_service, us_region, token, make_trace_body, make_kv) -> None:
        fake_service.query_body = make_trace_body([make_kv("_msg", "m"), make_kv("LogID", "kept")])
        client = LogQueryClient(fake_service.client(), FilterChain([]))
        result = await client.query(us_region, token, "abc")
        assert result.messages[0].value_of("LogID") == "kept"

    @pytest.mark.asyncio
    async def test_lines_without_msg_not_counted(self, fake_service, us_region, token, make_trace_body, make_kv) -> None:
        fake_service.query_body = make_trace_body(
            [make_kv("_ts", "1"), make_kv("_location", "main.go:1")],
            [make_kv("_msg", "hello"), make_kv("_ts", "2")],
        )
        result = await LogQueryClient(fake_service.client()).query(us_region, token, "abc")

        assert result.total_items == 1
        assert [v.key for v in result.messages[0].values] == ["_msg", "_ts"]


class TestErrors:
    @pytest.mark.asyncio
    async def test_non_2xx(self, fake_service, us_region, token) -> None:
        fake_service.query_status = 502
        fake_service.query_text = "bad gateway"
        with pytest.raises(QueryTransportError) as exc_info:
            await LogQueryClient(fake_service.client()).query(us_region, token, "abc")
        assert exc_info.value.cause == "status"
        assert exc_info.value.status == 502
        assert "HTTP 502" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout(self, fake_service, us_region, token) -> None:
        fake_service.query_error = httpx.ReadTimeout("slow")
        with pytest.raises(QueryTransportError) as exc_info:
            await LogQueryClient(fake_service.client()).query(us_region, token, "abc")
        assert exc_info.value.cause == "timeout"

    @pytest.mark.asyncio
    async def test_trickling_body_hits_total_deadline(self, us_region, token) -> None:
        async def trickle():
            # Each chunk arrives well inside a per-read timeout
            while True:
                await asyncio.sleep(0.05)
                yield b" "

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=trickle())

        client = LogQueryClient(
            httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            timeout_seconds=0.3,
        )
        loop = asyncio.get_running_loop()
        started = loop.time()
        with pytest.raises(QueryTransportError) as exc_info:
            await asyncio.wait_for(client.query(us_region, token, "abc"), 5)

        assert exc_info.value.cause == "timeout"
        assert loop.time() - started < 2

    @pytest.mark.asyncio
    async def test_slow_server_hits_total_deadline(self, us_region, token) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(10)
            return httpx.Response(200, json={"items": []})

        client = LogQueryClient(
            httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            timeout_seconds=0.1,
        )
        with pytest.raises(QueryTransportError) as exc_info:
            await asyncio.wait_for(client.query(us_region, token, "abc"), 5)
        assert exc_info.value.cause == "timeout"
        assert "0.1s" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_error_hides_token(self, fake_service, us_region, token) -> None:
        fake_service.query_error = httpx.ConnectError("reset after sending bearer-abc")
        with pytest.raises(QueryTransportError) as exc_info:
            await LogQueryClient(fake_service.client()).query(us_region, token, "abc")
        assert exc_info.value.cause == "transport"
        assert "bearer-abc" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_malformed_body(self, fake_service, us_region, token) -> None:
        fake_service.query_text = "not json at all"
        with pytest.raises(QueryMalformedError):
            await LogQueryClient(fake_service.client()).query(us_region, token, "abc")

    @pytest.mark.asyncio
    async def test_error_envelope_with_200(self, fake_service, us_region, token) -> None:
        fake_service.query_body = {"code": 401, "message": "token invalid"}
        with pytest.raises(QueryMalformedError) as exc_info:
            await LogQueryClient(fake_service.client()).query(us_region, token, "abc")
        assert "token invalid" in str(exc_info.value)
