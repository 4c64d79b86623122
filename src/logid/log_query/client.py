"""Regional log service query client.

Posts a trace query to a region's log service using a bearer token, parses
the body, runs every message through the filter chain and assembles the
unified ``QueryResult``.
"""
from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Optional, Sequence

import httpx

from logid.auth.token import Token
from logid.config import DEFAULT_TIMEOUT_SECONDS
from logid.diagnostics import get_logger, scrub, truncate
from logid.errors import QueryTransportError
from logid.filters import FilterChain
from logid.log_query.parse import parse_response
from logid.log_query.types import (
    CanonicalMessage,
    QueryRequest,
    QueryResult,
    normalize_psm_filters,
)
from logid.regions import RegionConfig

TOKEN_REQUEST_HEADER = "X-Jwt-Token"

# The trace API scans a fixed 10 minute window around the logid timestamp.
DEFAULT_SCAN_SPAN_MINUTES = 10


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class LogQueryClient:
    """Client for the regional trace query endpoints."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        filter_chain: Optional[FilterChain] = None,
        *,
        scan_span_minutes: int = DEFAULT_SCAN_SPAN_MINUTES,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        enable_logging: bool = False,
    ) -> None:
        self._http = http_client
        self._filters = filter_chain if filter_chain is not None else FilterChain()
        self._scan_span = scan_span_minutes
        self._timeout = timeout_seconds
        self._log = get_logger(__name__, enable_logging)

    @property
    def filter_chain(self) -> FilterChain:
        return self._filters

    def build_request(
        self, region_config: RegionConfig, logid: str, psm_filters: Sequence[str]
    ) -> QueryRequest:
        return QueryRequest(
            logid=logid,
            vregion=region_config.vregion,
            psm_list=normalize_psm_filters(psm_filters),
            scan_span_in_min=self._scan_span,
        )

    async def query(
        self,
        region_config: RegionConfig,
        token: Token,
        logid: str,
        psm_filters: Sequence[str] = (),
    ) -> QueryResult:
        """Query one region for a logid.

        Args:
            region_config: Target region
            token: Valid bearer token for that region
            logid: Trace identifier to look up
            psm_filters: PSMs to restrict to (empty means unrestricted)

        Returns:
            QueryResult with the surviving messages in server order

        Raises:
            QueryTransportError: On transport failure, timeout or non-2xx status
            QueryMalformedError: If the body is not in a tolerated shape
        """
        request = self.build_request(region_config, logid, psm_filters)
        self._log.info(
            "Querying logs: logid=%s region=%s psm_list=%s",
            logid,
            region_config.identifier,
            list(request.psm_list),
        )

        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._http.post(
                    region_config.query_url,
                    json=request.to_dict(),
                    headers={TOKEN_REQUEST_HEADER: token.value},
                ),
                self._timeout,
            )
        except asyncio.TimeoutError as exc:
            raise QueryTransportError("timeout", f"log query exceeded {self._timeout:g}s") from exc
        except httpx.TimeoutException as exc:
            raise QueryTransportError("timeout", f"log query timed out: {exc!r}") from exc
        except httpx.HTTPError as exc:
            raise QueryTransportError(
                "transport", f"log query failed: {scrub(str(exc), token.value)}"
            ) from exc

        elapsed = time.monotonic() - started
        self._log.info("Log query finished: status=%s elapsed=%.2fs", response.status_code, elapsed)

        if not response.is_success:
            body = truncate(scrub(response.text, token.value))
            self._log.info("Log query failed: status=%s body=%s", response.status_code, body)
            raise QueryTransportError(
                "status",
                f"log service for region {region_config.identifier} rejected the query",
                status=response.status_code,
            )

        parsed = parse_response(response.text)
        messages = self._filter_messages(parsed.messages, request.psm_list)

        result = QueryResult(
            logid=logid,
            region=region_config.identifier,
            region_display_name=region_config.display_name,
            messages=tuple(messages),
            timestamp=_utc_now_iso(),
            meta=parsed.meta,
            scan_time_range=parsed.scan_time_range,
            level_list=parsed.level_list,
            tag_infos=parsed.tag_infos,
            psm_filters=request.psm_list,
        )
        self._log.info(
            "Extracted %d of %d messages for logid=%s",
            result.total_items,
            len(parsed.messages),
            logid,
        )
        return result

    def _filter_messages(self, raw_messages, psm_filters: tuple[str, ...]) -> list[CanonicalMessage]:
        wanted = set(psm_filters)
        messages: list[CanonicalMessage] = []
        for raw in raw_messages:
            # The server-side PSM constraint is not trusted on its own.
            if wanted and raw.group.psm not in wanted:
                continue
            message = self._filters.apply(raw)
            if message is not None:
                messages.append(message)
        return messages
