from __future__ import annotations

from datetime import datetime
from typing import Any

from flask import request

from app.tracker.errors import NotFound, ValidationError

# Upper bound of the INTEGER primary keys in the schema.
MAX_ID = 2**31 - 1


def parse_id(raw: Any, what: str = "Resource") -> int:
    """
    Parse an entity id from a URL segment, query string or JSON body.
    Malformed ids are reported as NotFound, never as a parsing error.
    """
    if isinstance(raw, bool):
        raise NotFound(f"{what} not found")
    if isinstance(raw, int):
        value = raw
    else:
        s = str(raw or "").strip()
        if not (s.isascii() and s.isdigit()):
            raise NotFound(f"{what} not found")
        value = int(s)
    if value <= 0 or value > MAX_ID:
        raise NotFound(f"{what} not found")
    return value


def json_body() -> dict[str, Any]:
    """Return the request's JSON object body; anything else is a validation error."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def clean_str(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError("Expected a string value.")
    return value.strip()


def isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat(timespec="milliseconds") + "Z"
