"""
JSON codec shared by the local queue and the upload request body.

Datetimes and dates are written as ISO 8601 strings, so a timestamp read back
from a queued record is sent over the wire exactly as it was persisted.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict

from core.exceptions import CorruptRecordError


def _json_default(value: Any) -> Any:
    """Convert values the json module does not handle natively"""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (set, frozenset)):
        return list(value)
    if isinstance(value, Path):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode(data: Any) -> bytes:
    """Serialize an event or a batch request to UTF-8 JSON"""
    return json.dumps(data, ensure_ascii=False, default=_json_default).encode('utf-8')


def decode_event(raw: bytes, source: str = "<bytes>") -> Dict[str, Any]:
    """Deserialize one persisted event, raising CorruptRecordError if it is not a JSON object"""
    try:
        data = json.loads(raw.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CorruptRecordError(f"Could not decode event from {source}: {e}") from e

    if not isinstance(data, dict):
        raise CorruptRecordError(
            f"Expected a JSON object in {source}, got {type(data).__name__}"
        )
    return data


def decode_response(raw: bytes) -> Any:
    """Deserialize an upload response body (raises ValueError on malformed JSON)"""
    return json.loads(raw.decode('utf-8'))
