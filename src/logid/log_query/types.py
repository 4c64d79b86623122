"""Log query request and result models."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Optional, Sequence


@dataclass(frozen=True)
class QueryRequest:
    """Body posted to a regional log service."""

    logid: str
    vregion: str
    psm_list: tuple[str, ...] = ()
    scan_span_in_min: int = 10

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "logid": self.logid,
            "scan_span_in_min": self.scan_span_in_min,
            "vregion": self.vregion,
        }
        if self.psm_list:
            result["psm_list"] = list(self.psm_list)
        return result


@dataclass(frozen=True)
class LogGroup:
    """Where a message was emitted."""

    psm: Optional[str] = None
    pod_name: Optional[str] = None
    ipv4: Optional[str] = None
    env: Optional[str] = None
    vregion: Optional[str] = None
    idc: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LogGroup:
        return cls(
            psm=data.get("psm"),
            pod_name=data.get("pod_name"),
            ipv4=data.get("ipv4"),
            env=data.get("env"),
            vregion=data.get("vregion"),
            idc=data.get("idc"),
        )


@dataclass(frozen=True)
class FieldValue:
    """One key/value pair of a log message.

    ``value`` may have been scrubbed by the filter chain; ``original_value``
    always holds what the server sent.
    """

    key: str
    value: str
    original_value: str
    type: Optional[str] = None
    highlight: bool = False

    def with_value(self, value: str) -> FieldValue:
        return replace(self, value=value)


@dataclass(frozen=True)
class RawMessage:
    """A log entry as extracted from the service response, before filtering."""

    id: str
    group: LogGroup
    fields: tuple[FieldValue, ...]
    level: Optional[str] = None
    location: Optional[str] = None


@dataclass(frozen=True)
class CanonicalMessage:
    """A filtered log entry in the unified output schema."""

    id: str
    group: LogGroup
    values: tuple[FieldValue, ...]
    level: Optional[str] = None
    location: Optional[str] = None

    def as_raw(self) -> RawMessage:
        """Feed this message back into a filter chain."""
        return RawMessage(
            id=self.id,
            group=self.group,
            fields=self.values,
            level=self.level,
            location=self.location,
        )

    def value_of(self, key: str) -> Optional[str]:
        for fv in self.values:
            if fv.key == key:
                return fv.value
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "group": asdict(self.group),
            "values": [asdict(v) for v in self.values],
            "location": self.location,
            "level": self.level,
        }


@dataclass(frozen=True)
class ParsedResponse:
    """Messages and metadata pulled out of a service response body."""

    messages: tuple[RawMessage, ...]
    meta: Optional[dict[str, Any]] = None
    tag_infos: Optional[list[Any]] = None

    @property
    def scan_time_range(self) -> Optional[list[dict[str, Any]]]:
        return (self.meta or {}).get("scan_time_range")

    @property
    def level_list(self) -> Optional[list[str]]:
        return (self.meta or {}).get("level_list")


@dataclass(frozen=True)
class QueryResult:
    """Unified result of one logid query against one region."""

    logid: str
    region: str
    region_display_name: str
    messages: tuple[CanonicalMessage, ...]
    timestamp: str
    meta: Optional[dict[str, Any]] = None
    scan_time_range: Optional[list[dict[str, Any]]] = None
    level_list: Optional[list[str]] = None
    tag_infos: Optional[list[Any]] = None
    psm_filters: tuple[str, ...] = field(default_factory=tuple)

    @property
    def total_items(self) -> int:
        return len(self.messages)

    def to_dict(self) -> dict[str, Any]:
        """Convert the always-present fields to a dictionary."""
        return {
            "logid": self.logid,
            "region": self.region,
            "region_display_name": self.region_display_name,
            "total_items": self.total_items,
            "messages": [m.to_dict() for m in self.messages],
            "timestamp": self.timestamp,
        }


def normalize_psm_filters(psm_filters: Sequence[str]) -> tuple[str, ...]:
    """Strip blanks and duplicates while keeping first-seen order."""
    seen: dict[str, None] = {}
    for psm in psm_filters:
        psm = psm.strip()
        if psm:
            seen.setdefault(psm, None)
    return tuple(seen)
