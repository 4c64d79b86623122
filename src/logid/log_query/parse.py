"""Parse regional log service response bodies into raw messages.

The services do not agree on where the payload lives. Tolerated shapes:
- {"data": {"items": [...], "meta": {...}}, "tag_infos": [...]}
- {"items": [...], "meta": {...}}

Each item carries a group (psm, pod, ip, ...) and a list of values; each
value is one log line made of a kv_list. Anything else is malformed.
"""
from __future__ import annotations

import json
from typing import Any

from logid.errors import QueryMalformedError
from logid.log_query.types import FieldValue, LogGroup, ParsedResponse, RawMessage
from logid.validation import RESPONSE_SCHEMA, validate_document

LOCATION_KEY = "_location"
MESSAGE_KEY = "_msg"


def decode_body(text: str) -> Any:
    """Decode a response body as JSON.

    Raises:
        QueryMalformedError: If the body is not JSON
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        snippet = text[:80].replace("\n", " ")
        raise QueryMalformedError(f"body is not JSON ({e.msg} at char {e.pos}): {snippet!r}") from e


def locate_payload(body: Any) -> dict[str, Any]:
    """Find the object holding ``items``.

    Raises:
        QueryMalformedError: If no items list can be found
    """
    if not isinstance(body, dict):
        raise QueryMalformedError(f"expected a JSON object, got {type(body).__name__}")

    data = body.get("data")
    if isinstance(data, dict) and "items" in data:
        return data
    if "items" in body:
        return body

    code = body.get("code", body.get("status_code"))
    message = body.get("message") or body.get("msg") or body.get("error")
    if code is not None or message:
        raise QueryMalformedError(f"no items in response (code={code}, message={message})")
    raise QueryMalformedError(f"no items in response (keys: {sorted(body)})")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value)


def extract_messages(payload: dict[str, Any]) -> list[RawMessage]:
    """Turn ``items[].value[]`` entries into RawMessages in server order.

    Only log lines with a ``_msg`` entry are kept. ``_msg`` becomes the
    first field, the remaining entries follow in server order, and
    ``_location`` becomes the message location.
    """
    messages: list[RawMessage] = []
    for item in payload["items"]:
        group = LogGroup.from_dict(item.get("group") or {})
        for value in item["value"]:
            message_field: FieldValue | None = None
            fields: list[FieldValue] = []
            location = None
            for kv in value["kv_list"]:
                text = _as_text(kv.get("value"))
                if kv["key"] == LOCATION_KEY:
                    location = text
                    continue
                fv = FieldValue(
                    key=kv["key"],
                    value=text,
                    original_value=text,
                    type=kv.get("type"),
                    highlight=bool(kv.get("highlight")),
                )
                if kv["key"] == MESSAGE_KEY and message_field is None:
                    message_field = fv
                else:
                    fields.append(fv)
            if message_field is None:
                continue
            fields.insert(0, message_field)
            messages.append(
                RawMessage(
                    id=f"{item['id']}-{value['id']}",
                    group=group,
                    fields=tuple(fields),
                    level=value.get("level"),
                    location=location,
                )
            )
    return messages


def parse_response(text: str) -> ParsedResponse:
    """Decode, validate and extract a service response body.

    Raises:
        QueryMalformedError: If the body is not in a tolerated shape
    """
    body = decode_body(text)
    payload = locate_payload(body)

    issues = validate_document(payload, RESPONSE_SCHEMA)
    if issues:
        extra = f" (+{len(issues) - 1} more)" if len(issues) > 1 else ""
        raise QueryMalformedError(f"{issues[0]}{extra}")

    meta = payload.get("meta") if isinstance(payload.get("meta"), dict) else body.get("meta")
    tag_infos = payload.get("tag_infos")
    if tag_infos is None:
        tag_infos = body.get("tag_infos")

    return ParsedResponse(
        messages=tuple(extract_messages(payload)),
        meta=meta if isinstance(meta, dict) else None,
        tag_infos=tag_infos if isinstance(tag_infos, list) else None,
    )
