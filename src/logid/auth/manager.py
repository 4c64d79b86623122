"""Bearer token manager.

Exchanges a region's session credential for a short-lived bearer token at
the region's auth endpoint and caches the token in a ``TokenStore`` until it
expires. Refresh is lazy: it happens on the first ``get_token`` call after
expiry, never in the background.

Concurrent callers for a region without a valid token share one in-flight
exchange task, so at most one request per region reaches the auth endpoint
at a time. Each exchange is bounded by a total deadline. The store is only
written after a complete, successful exchange, so a cancelled exchange leaves
it untouched.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

import httpx

from logid.auth.credentials import Credential, CredentialSource
from logid.auth.token import (
    TOKEN_VALIDITY_SECONDS,
    Clock,
    Token,
    TokenStore,
    monotonic_clock,
)
from logid.config import DEFAULT_TIMEOUT_SECONDS
from logid.diagnostics import get_logger, scrub, truncate
from logid.errors import ExchangeFailedError
from logid.regions import Region, RegionConfig

TOKEN_HEADER = "x-jwt-token"


@dataclass
class _InFlight:
    task: asyncio.Task[Token]
    waiters: int = 0


class AuthManager:
    """Per-region token cache backed by the regional auth endpoints."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        credentials: CredentialSource,
        store: Optional[TokenStore] = None,
        *,
        clock: Clock = monotonic_clock,
        validity_seconds: float = TOKEN_VALIDITY_SECONDS,
        refresh_margin_seconds: float = 0.0,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        enable_logging: bool = False,
    ) -> None:
        self._http = http_client
        self._credentials = credentials
        self._store = store if store is not None else TokenStore()
        self._clock = clock
        self._validity = validity_seconds
        self._margin = refresh_margin_seconds
        self._timeout = timeout_seconds
        self._inflight: dict[Region, _InFlight] = {}
        self._log = get_logger(__name__, enable_logging)

    @property
    def store(self) -> TokenStore:
        return self._store

    def cached_token(self, region: Region) -> Optional[Token]:
        """Return the cached token for a region if it is still valid."""
        token = self._store.get(region)
        if token is not None and token.is_valid(self._clock(), self._margin):
            return token
        return None

    async def get_token(self, region_config: RegionConfig) -> Token:
        """Return a valid token for the region, exchanging a new one if needed.

        Raises:
            MissingCredentialError: If the region has no credential (no request is made)
            ExchangeFailedError: If the auth endpoint did not issue a token
        """
        region = region_config.region
        cached = self.cached_token(region)
        if cached is not None:
            self._log.debug("Using cached token for %s", region.value)
            return cached

        entry = self._inflight.get(region)
        # A finished task may still be registered until its done callback runs.
        if entry is None or entry.task.done():
            credential = self._credentials.credential_for(region_config)
            self._log.info("Requesting new token for %s (credential from %s)", region.value, credential.source)
            task = asyncio.ensure_future(self._refresh(region_config, credential))
            entry = _InFlight(task=task)
            self._inflight[region] = entry
            task.add_done_callback(lambda t, r=region: self._forget(r, t))
        else:
            self._log.debug("Joining in-flight token exchange for %s", region.value)

        entry.waiters += 1
        try:
            return await asyncio.shield(entry.task)
        except asyncio.CancelledError:
            # Abandon the exchange once nobody is waiting for it.
            if entry.waiters == 1 and not entry.task.done():
                entry.task.cancel()
            raise
        finally:
            entry.waiters -= 1

    def _forget(self, region: Region, task: asyncio.Task[Token]) -> None:
        entry = self._inflight.get(region)
        if entry is not None and entry.task is task:
            del self._inflight[region]
        if not task.cancelled():
            # Mark the exception retrieved; waiters re-raise it themselves.
            task.exception()

    async def _refresh(self, region_config: RegionConfig, credential: Credential) -> Token:
        value = await self._exchange(region_config, credential)
        token = Token(value=value, issued_at=self._clock(), validity_seconds=self._validity)
        self._store.put(region_config.region, token)
        self._log.info("Token for %s cached for %.0fs", region_config.identifier, self._validity)
        return token

    async def _exchange(self, region_config: RegionConfig, credential: Credential) -> str:
        region = region_config.identifier
        try:
            response = await asyncio.wait_for(
                self._http.get(
                    region_config.auth_url,
                    headers={"Cookie": credential.as_cookie()},
                ),
                self._timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ExchangeFailedError(
                region, "timeout", f"auth request exceeded {self._timeout:g}s"
            ) from exc
        except httpx.TimeoutException as exc:
            raise ExchangeFailedError(region, "timeout", f"auth request timed out: {exc!r}") from exc
        except httpx.HTTPError as exc:
            raise ExchangeFailedError(
                region, "transport", f"auth request failed: {scrub(str(exc), credential.secret)}"
            ) from exc

        if not response.is_success:
            self._log.info(
                "Token exchange failed: region=%s status=%s body=%s",
                region,
                response.status_code,
                truncate(scrub(response.text, credential.secret)),
            )
            raise ExchangeFailedError(
                region,
                "status",
                f"auth endpoint returned HTTP {response.status_code}",
                status=response.status_code,
            )

        token = response.headers.get(TOKEN_HEADER, "").strip()
        if not token:
            raise ExchangeFailedError(region, "parse", "auth response carried no X-Jwt-Token header")
        return token
