"""Result envelope rendering.

Success: ``{"success":true,"result":<value>}``
Failure: ``{"success":false,"error":<message>}``

A ``str`` result that is already structured JSON text (an object or array)
is embedded as its decoded value rather than as a quoted string.
"""

from __future__ import annotations

import json
from typing import Any, Tuple

from pydantic_core import PydanticSerializationError, to_jsonable_python

_SEPARATORS = (",", ":")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite constant {name} is not JSON")


def decode_structured_text(value: str) -> Tuple[bool, Any]:
    """Detect structured text syntactically.

    ``NaN`` and ``Infinity`` are not accepted as JSON, so text carrying them
    stays a plain string.

    Returns:
        ``(True, decoded)`` when ``value`` is a JSON object or array,
        otherwise ``(False, value)``.
    """
    stripped = value.strip()
    if not stripped or stripped[0] not in "{[":
        return False, value
    try:
        return True, json.loads(stripped, parse_constant=_reject_constant)
    except ValueError:
        return False, value


def render_success(value: Any) -> str:
    """
    Render a successful result.

    Raises:
        ValueError: If the value (or a nested value) cannot be represented as JSON.
    """
    if isinstance(value, str):
        _, value = decode_structured_text(value)
    else:
        try:
            value = to_jsonable_python(value)
        except PydanticSerializationError as exc:
            raise ValueError(str(exc)) from exc
    return json.dumps({"success": True, "result": value}, separators=_SEPARATORS, ensure_ascii=False, allow_nan=False)


def render_error(message: str) -> str:
    return json.dumps({"success": False, "error": message}, separators=_SEPARATORS, ensure_ascii=False)
