"""orjson wrappers used for every wire and config document."""

from typing import Any

import orjson

JSONDecodeError = orjson.JSONDecodeError
JSONEncodeError = orjson.JSONEncodeError


def loads(data: bytes | str) -> Any:
    """Parse a JSON document."""
    return orjson.loads(data)


def dumps(obj: Any) -> bytes:
    """Serialize to compact JSON bytes."""
    return orjson.dumps(obj)


def dumps_line(obj: Any) -> bytes:
    """Serialize to a single newline-terminated JSON line."""
    return orjson.dumps(obj, option=orjson.OPT_APPEND_NEWLINE)
