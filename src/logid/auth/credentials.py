"""Session credential resolution."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from logid.errors import MissingCredentialError
from logid.regions import SHARED_CREDENTIAL_ENV_VAR, RegionConfig


def mask_secret(value: str, visible: int = 4) -> str:
    """Mask a secret for display, keeping only a short prefix."""
    if not value:
        return ""
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}...({len(value)} chars)"


@dataclass(frozen=True)
class Credential:
    """Session secret bound to one region."""

    region: str
    source: str
    secret: str = field(repr=False)

    def __str__(self) -> str:
        return f"Credential({self.region} from {self.source}: {mask_secret(self.secret)})"

    def as_cookie(self) -> str:
        return f"{SHARED_CREDENTIAL_ENV_VAR}={self.secret}"


class CredentialSource:
    """Resolve session credentials from a resolved configuration mapping.

    Lookup order per region:
    1. The region-specific key (``CAS_SESSION_US`` etc.)
    2. The shared ``CAS_SESSION`` fallback

    The first non-empty value wins. Another region's key is never used.
    """

    def __init__(self, env: Mapping[str, str]) -> None:
        self._env = env

    def candidate_keys(self, region_config: RegionConfig) -> list[str]:
        keys = [region_config.credential_env_var]
        upper = region_config.credential_env_var.upper()
        if upper not in keys:
            keys.append(upper)
        keys.append(SHARED_CREDENTIAL_ENV_VAR)
        return [k for k in keys if k]

    def credential_for(self, region_config: RegionConfig) -> Credential:
        """Return the credential for a region.

        Raises:
            MissingCredentialError: If no candidate key holds a value
        """
        keys = self.candidate_keys(region_config)
        for key in keys:
            value = (self._env.get(key) or "").strip()
            if value:
                return Credential(region=region_config.identifier, source=key, secret=value)
        raise MissingCredentialError(region_config.identifier, keys)
