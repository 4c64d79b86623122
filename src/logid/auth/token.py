"""Bearer tokens and the per-region token store."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from logid.regions import Region

# Tokens handed out by the auth endpoints are valid for one hour.
TOKEN_VALIDITY_SECONDS = 3600.0

Clock = Callable[[], float]


@dataclass(frozen=True)
class Token:
    """A bearer token plus the instant it was issued."""

    value: str = field(repr=False)
    issued_at: float
    validity_seconds: float = TOKEN_VALIDITY_SECONDS

    @property
    def expires_at(self) -> float:
        return self.issued_at + self.validity_seconds

    def remaining(self, now: float) -> float:
        return self.expires_at - now

    def is_valid(self, now: float, margin_seconds: float = 0.0) -> bool:
        """True while ``now`` is strictly before expiry (less the margin)."""
        return self.remaining(now) > margin_seconds


class TokenStore:
    """In-memory mapping of Region -> Token.

    Entries are replaced, never mutated. Nothing is persisted.
    """

    def __init__(self) -> None:
        self._tokens: dict[Region, Token] = {}

    def get(self, region: Region) -> Optional[Token]:
        return self._tokens.get(region)

    def put(self, region: Region, token: Token) -> None:
        self._tokens[region] = token

    def __contains__(self, region: object) -> bool:
        return region in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)


def monotonic_clock() -> float:
    return time.monotonic()
