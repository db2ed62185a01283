"""JSON handling at the storage boundary.

Sub-records are validated as pydantic models on the way in and persisted
as JSONB. Some historical write paths stored an already-serialized string
inside the JSON column, so the read path decodes defensively.
"""

from __future__ import annotations

import enum
import json
import uuid
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator

# Parse once; if the result is still a string, parse again.
MAX_DECODE_PASSES = 2


def decode_json_value(value: Any) -> Any:
    """Decode a stored JSON value that may have been encoded more than once.

    Non-string values are returned unchanged. A string that is not valid
    JSON is returned as-is rather than raising.
    """
    for _ in range(MAX_DECODE_PASSES):
        if not isinstance(value, (str, bytes, bytearray)):
            break
        try:
            value = json.loads(value)
        except (json.JSONDecodeError, UnicodeDecodeError):
            break
    return value


def to_jsonable(value: Any) -> Any:
    """Convert ORM/pydantic values into plain JSON-compatible structures."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return str(value)


class JSONRecord(TypeDecorator):
    """JSONB column for typed sub-records with a defensive read path."""

    impl = JSONB(none_as_null=True)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return None
        return to_jsonable(value)

    def process_result_value(self, value: Any, dialect: Any) -> Any:
        return decode_json_value(value)
