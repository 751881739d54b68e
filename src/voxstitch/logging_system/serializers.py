"""
Custom serializers for VoxStitch logging.
"""
from __future__ import annotations

import json
import traceback as _traceback
from datetime import datetime, timezone
from typing import Any, Dict


def _iso_timestamp(dt: datetime) -> str:
    return dt.isoformat(timespec="milliseconds")


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    return str(value)


def flat_json_serializer(record: Dict[str, Any]) -> str:
    """
    Loguru-compatible format function that returns one JSON line per record.

    Keys: timestamp, level, logger, message, extra, module, function, line and
    exception (if any).
    """
    time_obj = record.get("time")
    if isinstance(time_obj, datetime):
        ts = _iso_timestamp(time_obj)
    else:
        ts = _iso_timestamp(datetime.now(timezone.utc))

    level_obj = record.get("level")
    level_name = getattr(level_obj, "name", None) or (str(level_obj) if level_obj else "INFO")

    extra = dict(record.get("extra") or {})
    data: Dict[str, Any] = {
        "timestamp": ts,
        "level": level_name,
        "logger": extra.pop("name", None) or record.get("name", "voxstitch"),
        "message": record.get("message", ""),
        "extra": _jsonable(extra),
        "module": record.get("module"),
        "function": record.get("function"),
        "line": record.get("line"),
    }

    exc = record.get("exception")
    if exc:
        _type, _value, _tb = exc
        data["exception"] = {
            "type": getattr(_type, "__name__", str(_type)),
            "message": str(_value),
            "traceback": "".join(_traceback.format_exception(_type, _value, _tb)),
        }

    s = json.dumps(data, ensure_ascii=False)
    # Escape braces so Loguru's formatter does not try to format our JSON
    s = s.replace("{", "{{").replace("}", "}}")
    return s + "\n"
