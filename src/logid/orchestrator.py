"""Query orchestration: region -> token -> log query -> QueryResult.

``Orchestrator.run`` is the single entry point the CLI uses. It either
returns a complete ``QueryResult`` or raises a ``LogidError`` subclass;
there is no partial-result mode.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

import httpx

from logid.auth.credentials import CredentialSource
from logid.auth.manager import AuthManager
from logid.auth.token import TokenStore
from logid.config import Config
from logid.diagnostics import get_logger
from logid.errors import RegionNotConfiguredError
from logid.filters import FilterChain, load_filter_chain
from logid.log_query.client import LogQueryClient
from logid.log_query.types import QueryResult
from logid.regions import resolve_region

if TYPE_CHECKING:
    from types import TracebackType

DEFAULT_HEADERS = {
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
    "User-Agent": "logid-cli",
}


def build_http_client(config: Config) -> httpx.AsyncClient:
    """HTTP client with per-phase timeouts (connect, read, write, pool).

    The total deadline of each call is enforced by the auth manager and the
    query client.
    """
    proxy = config.get("HTTPS_PROXY") or config.get("HTTP_PROXY") or None
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.timeout_seconds),
        headers=DEFAULT_HEADERS,
        proxy=proxy,
    )


class Orchestrator:
    """Drives one logid query against one region."""

    def __init__(
        self,
        auth_manager: AuthManager,
        query_client: LogQueryClient,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        enable_logging: bool = False,
    ) -> None:
        self._auth = auth_manager
        self._query = query_client
        self._owned_client = http_client
        self._log = get_logger(__name__, enable_logging)

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        store: Optional[TokenStore] = None,
        filter_chain: Optional[FilterChain] = None,
    ) -> Orchestrator:
        """Wire up the components from a loaded Config.

        When ``http_client`` is omitted one is built from the config and
        closed by ``aclose``; an injected client stays owned by the caller.
        """
        if filter_chain is None:
            filter_chain = load_filter_chain(config.filter_rules_path, config.enable_logging)
        owned = None
        if http_client is None:
            http_client = owned = build_http_client(config)

        auth = AuthManager(
            http_client,
            CredentialSource(config.env),
            store,
            timeout_seconds=config.timeout_seconds,
            enable_logging=config.enable_logging,
        )
        query = LogQueryClient(
            http_client,
            filter_chain,
            timeout_seconds=config.timeout_seconds,
            enable_logging=config.enable_logging,
        )
        return cls(auth, query, http_client=owned, enable_logging=config.enable_logging)

    @property
    def auth_manager(self) -> AuthManager:
        return self._auth

    async def run(
        self,
        region_identifier: str,
        logid: str,
        psm_filters: Sequence[str] = (),
    ) -> QueryResult:
        """Query ``logid`` in one region.

        Raises:
            UnknownRegionError: Region identifier not in the registry
            RegionNotConfiguredError: Region has no log service endpoint
            AuthError: Credential missing or token exchange failed
            QueryError: Log query failed or returned a malformed body
        """
        region_config = resolve_region(region_identifier)
        if not region_config.configured:
            raise RegionNotConfiguredError(region_config.identifier)

        self._log.info("Running query: logid=%s region=%s", logid, region_config.identifier)
        token = await self._auth.get_token(region_config)
        return await self._query.query(region_config, token, logid, psm_filters)

    async def aclose(self) -> None:
        if self._owned_client is not None:
            await self._owned_client.aclose()
            self._owned_client = None

    async def __aenter__(self) -> Orchestrator:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()
