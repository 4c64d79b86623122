"""JSON Schema validation for service responses and filter rules files."""
from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import jsonschema

RESPONSE_SCHEMA = "query_response.schema.json"
FILTER_RULES_SCHEMA = "filter_rules.schema.json"


@dataclass
class ValidationIssue:
    """A single validation error."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


def _get_schema_dir() -> Path:
    """Get the directory containing schemas."""
    return Path(__file__).parent / "schemas"


@lru_cache(maxsize=None)
def load_schema(schema_name: str) -> dict[str, Any]:
    """Load a packaged JSON schema by name."""
    schema_path = _get_schema_dir() / schema_name
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_path}")
    return json.loads(schema_path.read_text(encoding="utf-8"))


def _format_path(path: list[Any]) -> str:
    """Format a jsonschema path as a dotted string."""
    if not path:
        return "$"
    parts = ["$"]
    for p in path:
        if isinstance(p, int):
            parts.append(f"[{p}]")
        else:
            parts.append(f".{p}")
    return "".join(parts)


def validate_document(data: Any, schema_name: str) -> list[ValidationIssue]:
    """Validate data against a packaged schema.

    Returns:
        Issues ordered by location (empty if valid).
    """
    validator = jsonschema.Draft202012Validator(load_schema(schema_name))
    errors = sorted(validator.iter_errors(data), key=lambda e: list(map(str, e.absolute_path)))
    return [
        ValidationIssue(path=_format_path(list(err.absolute_path)), message=err.message)
        for err in errors
    ]
