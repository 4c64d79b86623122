"""Message filter chain.

Removes compliance boilerplate and known-noisy fields from log messages
before they reach the output. Rules are data: each one is a
``{match, pattern, action}`` triple evaluated in registration order.

Match kinds:
- key: exact field key
- prefix: field key prefix
- regex: regular expression searched in the field value

Actions:
- drop_message: discard the whole message (short-circuits later rules)
- drop_field: remove matching fields
- strip: remove the regex match from field values (regex rules only)
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional, Pattern, Sequence

import yaml

from logid.diagnostics import get_logger
from logid.errors import FilterConfigError
from logid.log_query.types import CanonicalMessage, FieldValue, RawMessage
from logid.validation import FILTER_RULES_SCHEMA, validate_document


class MatchKind(str, Enum):
    KEY = "key"
    PREFIX = "prefix"
    REGEX = "regex"


class FilterAction(str, Enum):
    DROP_MESSAGE = "drop_message"
    DROP_FIELD = "drop_field"
    STRIP = "strip"


@dataclass(frozen=True)
class FilterRule:
    """One filter rule."""

    match: MatchKind
    pattern: str
    action: FilterAction
    name: str = ""
    compiled: Optional[Pattern[str]] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "match", MatchKind(self.match))
        object.__setattr__(self, "action", FilterAction(self.action))
        if self.action is FilterAction.STRIP and self.match is not MatchKind.REGEX:
            raise FilterConfigError(f"rule {self.label!r}: strip requires a regex match")
        if self.match is MatchKind.REGEX:
            try:
                object.__setattr__(self, "compiled", re.compile(self.pattern))
            except re.error as e:
                raise FilterConfigError(f"invalid regular expression {self.pattern!r}: {e}") from e

    @property
    def label(self) -> str:
        return self.name or f"{self.match.value}:{self.pattern}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FilterRule:
        try:
            return cls(
                match=MatchKind(data["match"]),
                pattern=data["pattern"],
                action=FilterAction(data["action"]),
                name=data.get("name", ""),
            )
        except (KeyError, ValueError) as e:
            raise FilterConfigError(f"invalid rule {data!r}: {e}") from e

    def matches(self, fv: FieldValue) -> bool:
        if self.match is MatchKind.KEY:
            return fv.key == self.pattern
        if self.match is MatchKind.PREFIX:
            return fv.key.startswith(self.pattern)
        return self.compiled.search(fv.value) is not None

    def strip(self, fv: FieldValue) -> FieldValue:
        value = fv.value
        # Repeat until stable so a removal cannot expose a new match. Every
        # pass that changes the value shortens it, so the loop terminates.
        while True:
            stripped = self.compiled.sub("", value)
            if stripped == value:
                break
            value = stripped
        if value == fv.value:
            return fv
        return fv.with_value(tidy_whitespace(value))


_BLANK_RUN = re.compile(r"[ \t]{2,}")
_BLANK_LINES = re.compile(r"\n\s*\n\s*\n")


def tidy_whitespace(text: str) -> str:
    """Collapse blank runs and triple blank lines left behind by stripping."""
    text = _BLANK_RUN.sub(" ", text)
    text = _BLANK_LINES.sub("\n\n", text)
    return text.strip()


NOISE_MARKERS = (
    "_compliance_nlp_log",
    "_compliance_whitelist_log",
    "_compliance_source=footprint",
)

NOISY_KEYS = ("user_extra", "LogID", "Addr", "Client")

# Same noise embedded as JSON fragments inside the message text.
EMBEDDED_NOISE_PATTERNS = (
    r'(?s)"user_extra":\s*"\{.*?\}"',
    r'"LogID":\s*"[^"]*"',
    r'"Addr":\s*"[^"]*"',
    r'"Client":\s*"[^"]*"',
)


def marker_rules() -> list[FilterRule]:
    rules = [
        FilterRule(MatchKind.KEY, marker, FilterAction.DROP_MESSAGE, name=f"marker-key:{marker}")
        for marker in NOISE_MARKERS
    ]
    rules.append(
        FilterRule(
            MatchKind.REGEX,
            "|".join(re.escape(m) for m in NOISE_MARKERS),
            FilterAction.DROP_MESSAGE,
            name="marker-value",
        )
    )
    return rules


def noisy_key_rules() -> list[FilterRule]:
    return [
        FilterRule(MatchKind.KEY, key, FilterAction.DROP_FIELD, name=f"noisy-key:{key}")
        for key in NOISY_KEYS
    ]


def strip_rules(patterns: Iterable[str]) -> list[FilterRule]:
    return [FilterRule(MatchKind.REGEX, p, FilterAction.STRIP) for p in patterns]


def default_rules() -> list[FilterRule]:
    """Built-in rules: noise markers, noisy keys, embedded noise fragments."""
    return marker_rules() + noisy_key_rules() + strip_rules(EMBEDDED_NOISE_PATTERNS)


class FilterChain:
    """Ordered sequence of filter rules."""

    def __init__(self, rules: Optional[Sequence[FilterRule]] = None) -> None:
        self.rules: list[FilterRule] = list(default_rules() if rules is None else rules)

    def __len__(self) -> int:
        return len(self.rules)

    def append(self, rule: FilterRule) -> None:
        self.rules.append(rule)

    def apply(self, message: RawMessage) -> Optional[CanonicalMessage]:
        """Filter one message.

        Returns:
            The canonical message, or None when the message is dropped
            (a drop_message rule matched or no field survived).
        """
        fields = list(message.fields)
        for rule in self.rules:
            if rule.action is FilterAction.DROP_MESSAGE:
                if any(rule.matches(fv) for fv in fields):
                    return None
            elif rule.action is FilterAction.DROP_FIELD:
                fields = [fv for fv in fields if not rule.matches(fv)]
            else:
                fields = [rule.strip(fv) for fv in fields]

        if not fields:
            return None

        return CanonicalMessage(
            id=message.id,
            group=message.group,
            values=tuple(fields),
            level=message.level,
            location=message.location,
        )


_LEGACY_PATTERN_KEYS = ("msg_filters", "_msg_filters", "patterns")


def load_filter_chain(path: Optional[Path] = None, enable_logging: bool = False) -> FilterChain:
    """Build the filter chain, optionally from a YAML/JSON rules file.

    A ``rules`` list replaces the built-in rules. A legacy pattern list
    (``msg_filters``, ``_msg_filters`` or ``patterns``) replaces only the
    embedded-noise strip patterns. A missing file means built-in rules.

    Raises:
        FilterConfigError: If the file cannot be parsed or fails validation
    """
    log = get_logger(__name__, enable_logging)

    if path is None:
        return FilterChain()

    if not path.exists():
        log.info("Filter rules file not found, using built-in rules: %s", path)
        return FilterChain()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise FilterConfigError(f"cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise FilterConfigError(f"{path} is not valid YAML/JSON: {e}") from e

    issues = validate_document(data, FILTER_RULES_SCHEMA)
    if issues:
        raise FilterConfigError(f"{path}: {issues[0]}")

    if "rules" in data:
        rules = [FilterRule.from_dict(r) for r in data["rules"]]
    else:
        key = next(k for k in _LEGACY_PATTERN_KEYS if k in data)
        rules = marker_rules() + noisy_key_rules() + strip_rules(data[key])

    log.info("Loaded %d filter rules from %s", len(rules), path)
    return FilterChain(rules)
