"""Argument coercion.

Converts an untyped payload (a mapping decoded from JSON) into the keyword
arguments a capability declares. Every declared parameter is checked and all
violations of one call are reported together, so callers (and tests) see the
full set of problems instead of the first one.

Conversion rules per type tag:

- ``string``: ``str`` values only.
- ``integer``: ints, integral floats (``3.0``) and numeric strings (``"42"``);
  booleans are rejected.
- ``number``: ints and finite floats, or numeric strings; booleans are rejected.
  Ints are kept as ints.
- ``boolean``: ``bool`` values or the strings ``"true"``/``"false"``.
- ``array``: lists/tuples, or a JSON array encoded as text; elements are
  converted when the parameter declares an element tag.
- ``object``: the raw value is passed through for application-level parsing.

Keys that are not declared parameters are ignored. A JSON ``null`` counts as
an absent value; an absent optional parameter with no default is passed as
``None``.
"""

from __future__ import annotations

import json
import math
from typing import Any, Callable, Dict, List, Mapping, Tuple

from ..errors import MalformedArgumentsError
from ..schemas.domain import ArgumentViolation, CapabilityDescriptor, ParameterDescriptor, TypeTag

_TRUE_STRINGS = frozenset({"true"})
_FALSE_STRINGS = frozenset({"false"})


class CoercionError(ValueError):
    """Raised by a single conversion; collected into ``ArgumentViolation`` records."""


def _to_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    raise CoercionError(f"expected string, got {type(value).__name__}")


def _to_integer(value: Any) -> int:
    if isinstance(value, bool):
        raise CoercionError("expected integer, got boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return int(value)
        raise CoercionError(f"expected integer, got non-integral number {value!r}")
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise CoercionError(f"expected integer, got unparsable string {value!r}") from None
    raise CoercionError(f"expected integer, got {type(value).__name__}")


def _to_number(value: Any) -> Any:
    if isinstance(value, bool):
        raise CoercionError("expected number, got boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise CoercionError(f"expected finite number, got {value!r}")
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            parsed = float(text)
        except ValueError:
            raise CoercionError(f"expected number, got unparsable string {value!r}") from None
        if not math.isfinite(parsed):
            raise CoercionError(f"expected finite number, got {value!r}")
        return parsed
    raise CoercionError(f"expected number, got {type(value).__name__}")


def _to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        raise CoercionError(f"expected boolean, got unparsable string {value!r}")
    raise CoercionError(f"expected boolean, got {type(value).__name__}")


def _to_array(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str) and value.strip().startswith("["):
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            raise CoercionError("expected array, got malformed JSON array text") from None
        if isinstance(decoded, list):
            return decoded
    raise CoercionError(f"expected array, got {type(value).__name__}")


def _passthrough(value: Any) -> Any:
    return value


_CONVERTERS: Dict[TypeTag, Callable[[Any], Any]] = {
    TypeTag.string: _to_string,
    TypeTag.integer: _to_integer,
    TypeTag.number: _to_number,
    TypeTag.boolean: _to_boolean,
    TypeTag.array: _to_array,
    TypeTag.object: _passthrough,
}


def coerce_value(param: ParameterDescriptor, value: Any) -> Any:
    """Convert one value according to its parameter descriptor.

    Raises:
        CoercionError: If the value cannot be converted.
    """
    converted = _CONVERTERS[param.type_tag](value)
    if param.type_tag is TypeTag.array and param.items is not None and param.items is not TypeTag.object:
        convert_item = _CONVERTERS[param.items]
        items = []
        for index, item in enumerate(converted):
            try:
                items.append(convert_item(item))
            except CoercionError as exc:
                raise CoercionError(f"element {index}: {exc}") from None
        converted = items
    return converted


class ArgumentCoercer:
    """Turns untyped payloads into fully-typed argument sets.

    The coercer never invokes an executor; it either returns a complete
    argument set or raises ``MalformedArgumentsError`` listing every violation.
    """

    def collect(
        self, descriptor: CapabilityDescriptor, payload: Mapping[str, Any]
    ) -> Tuple[Dict[str, Any], List[ArgumentViolation]]:
        """Coerce ``payload`` and return the arguments together with all violations."""
        arguments: Dict[str, Any] = {}
        violations: List[ArgumentViolation] = []
        for param in descriptor.parameters:
            value = payload.get(param.name)
            if value is None:
                if param.required:
                    violations.append(ArgumentViolation(parameter=param.name, reason="missing required parameter"))
                else:
                    arguments[param.name] = param.default_value
                continue
            try:
                arguments[param.name] = coerce_value(param, value)
            except CoercionError as exc:
                violations.append(ArgumentViolation(parameter=param.name, reason=str(exc)))
        return arguments, violations

    def coerce(self, descriptor: CapabilityDescriptor, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Coerce ``payload`` against ``descriptor``.

        Args:
            descriptor: The capability whose parameters drive the conversion.
            payload: The decoded, untyped argument mapping.

        Returns:
            Keyword arguments for every declared parameter. Omitted optional
            parameters receive their published default, or ``None``.

        Raises:
            MalformedArgumentsError: If any parameter is missing or cannot be converted.
        """
        arguments, violations = self.collect(descriptor, payload)
        if violations:
            raise MalformedArgumentsError(f"Invalid arguments for capability '{descriptor.name}'", violations)
        return arguments
