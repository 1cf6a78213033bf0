"""
JSON helpers for request and response bodies.
"""
import base64
import datetime as dt
import json
from decimal import Decimal
from typing import Any


def _default(value: Any) -> Any:
    """Serialize SDK value types that the json module does not handle."""
    if isinstance(value, (dt.datetime, dt.date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return int(value) if value == int(value) else float(value)
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode('ascii')
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json_bytes(value: Any) -> bytes:
    """
    Serialize a value to compact UTF-8 JSON.

    Raises:
        TypeError: If the value contains an unsupported type
        ValueError: If the value contains a circular reference
    """
    return json.dumps(value, separators=(',', ':'), default=_default).encode('utf-8')
