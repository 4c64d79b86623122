"""Regional log service registry.

Each region is an independently-hosted deployment of the log service with
its own auth endpoint, query endpoint and session credential. Adding a
region means adding an enum member and a row in ``REGION_TABLE``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from logid.errors import UnknownRegionError


class Region(str, Enum):
    """Supported log service regions."""

    US = "us"
    I18N = "i18n"
    CN = "cn"


@dataclass(frozen=True)
class RegionConfig:
    """Endpoints and credential source for one region."""

    region: Region
    display_name: str
    auth_url: str
    query_url: str = ""
    vregion: str = ""
    zones: tuple[str, ...] = field(default_factory=tuple)
    credential_env_var: str = ""

    @property
    def identifier(self) -> str:
        return self.region.value

    @property
    def configured(self) -> bool:
        """True when the region has a log service endpoint."""
        return bool(self.query_url)


SHARED_CREDENTIAL_ENV_VAR = "CAS_SESSION"

REGION_TABLE: dict[Region, RegionConfig] = {
    Region.US: RegionConfig(
        region=Region.US,
        display_name="US",
        auth_url="https://cloud-ttp-us.bytedance.net/auth/api/v1/jwt",
        query_url="https://logservice-tx.tiktok-us.org/streamlog/platform/microservice/v1/query/trace",
        vregion="US-TTP,US-TTP2",
        zones=("US-TTP", "US-TTP2"),
        credential_env_var="CAS_SESSION_US",
    ),
    Region.I18N: RegionConfig(
        region=Region.I18N,
        display_name="International (Singapore)",
        auth_url="https://cloud-i18n.bytedance.net/auth/api/v1/jwt",
        query_url="https://logservice-sg.tiktok-row.org/streamlog/platform/microservice/v1/query/trace",
        vregion="Singapore-Common,US-East,Singapore-Central",
        zones=("Singapore-Common", "US-East", "Singapore-Central"),
        credential_env_var="CAS_SESSION_I18n",
    ),
    # No log service endpoint has been published for CN yet.
    Region.CN: RegionConfig(
        region=Region.CN,
        display_name="China",
        auth_url="https://cloud.bytedance.net/auth/api/v1/jwt",
        credential_env_var="CAS_SESSION_CN",
    ),
}


def region_identifiers() -> list[str]:
    """Return the valid region identifiers in table order."""
    return [r.value for r in REGION_TABLE]


def resolve_region(identifier: str) -> RegionConfig:
    """Look up a region by identifier (case-insensitive).

    Raises:
        UnknownRegionError: If the identifier is not in the registry
    """
    try:
        region = Region(identifier.strip().lower())
    except ValueError:
        raise UnknownRegionError(identifier, region_identifiers()) from None
    return REGION_TABLE[region]
