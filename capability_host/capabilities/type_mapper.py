"""Type descriptor mapper.

Resolves a parameter's semantic type to exactly one schema ``TypeTag``.

A semantic type is either a Python annotation (``int``, ``list[str]``,
``Optional[float]``, ``Annotated[bool, ...]``) or a textual type name as
published by plugins written in other languages (``"i32"``, ``"Vec<String>"``,
``"f64"``). Resolution order is fixed:

1. textual types -> ``string``
2. signed/unsigned integer types -> ``integer``
3. floating types -> ``number``
4. boolean -> ``boolean``
5. sequence types -> ``array``
6. anything else -> ``object``

``bool`` is tested before ``int`` because it subclasses ``int`` in Python.
The mapping is pure: the same input always yields the same tag.
"""

from __future__ import annotations

import collections.abc
import decimal
import numbers
import re
import types
from typing import Annotated, Any, Literal, Optional, Tuple, Union, get_args, get_origin

from ..schemas.domain import TypeTag

_NONE_TYPE = type(None)

_STRING_NAMES = frozenset({"str", "string", "&str", "char", "text", "path", "pathbuf"})
_INTEGER_NAME = re.compile(r"^(int|integer|long|short|byte|sbyte|ushort|uint|ulong|[iu](8|16|32|64|128|size))$")
_NUMBER_NAMES = frozenset({"float", "f32", "f64", "double", "decimal", "number", "real"})
_BOOLEAN_NAMES = frozenset({"bool", "boolean"})
_ARRAY_NAMES = frozenset({"list", "tuple", "set", "frozenset", "array", "sequence", "vec", "hashset", "ienumerable"})

_OPTIONAL_NAME = re.compile(r"^(?:option|optional)\s*[<\[]\s*(.+?)\s*[>\]]$", re.IGNORECASE)
_GENERIC_NAME = re.compile(r"^([A-Za-z_][\w.]*)\s*[<\[]\s*(.*?)\s*[>\]]$")
_SUFFIX_ARRAY_NAME = re.compile(r"^(.+?)\s*\[\s*\]$")


def unwrap_annotation(semantic_type: Any) -> Tuple[Any, bool]:
    """Strip ``Annotated`` and ``Optional`` wrappers.

    Returns:
        The inner type and whether ``None`` was part of the declared type.
    """
    origin = get_origin(semantic_type)
    if origin is Annotated:
        return unwrap_annotation(get_args(semantic_type)[0])
    if origin is Union or origin is types.UnionType:
        args = get_args(semantic_type)
        non_none = [a for a in args if a is not _NONE_TYPE]
        nullable = len(non_none) < len(args)
        if len(non_none) == 1:
            inner, inner_nullable = unwrap_annotation(non_none[0])
            return inner, nullable or inner_nullable
        return semantic_type, nullable
    return semantic_type, False


def unwrap_type_name(name: str) -> Tuple[str, bool]:
    text = name.strip()
    nullable = False
    while True:
        if text.endswith("?"):
            text, nullable = text[:-1].strip(), True
            continue
        match = _OPTIONAL_NAME.match(text)
        if match:
            text, nullable = match.group(1).strip(), True
            continue
        return text, nullable


def _map_name(name: str) -> TypeTag:
    text, _ = unwrap_type_name(name)
    if _SUFFIX_ARRAY_NAME.match(text):
        return TypeTag.array
    generic = _GENERIC_NAME.match(text)
    if generic:
        base = generic.group(1).split(".")[-1].lower()
        return TypeTag.array if base in _ARRAY_NAMES else TypeTag.object

    lowered = text.lower()
    if lowered in _STRING_NAMES:
        return TypeTag.string
    if _INTEGER_NAME.match(lowered):
        return TypeTag.integer
    if lowered in _NUMBER_NAMES:
        return TypeTag.number
    if lowered in _BOOLEAN_NAMES:
        return TypeTag.boolean
    if lowered in _ARRAY_NAMES:
        return TypeTag.array
    return TypeTag.object


def _is_sequence_type(tp: Any) -> bool:
    return (
        isinstance(tp, type)
        and issubclass(tp, (collections.abc.Sequence, collections.abc.Set))
        and not issubclass(tp, (str, bytes, bytearray))
    )


def _map_class(tp: type) -> TypeTag:
    if issubclass(tp, bool):
        return TypeTag.boolean
    if issubclass(tp, str):
        return TypeTag.string
    if issubclass(tp, numbers.Integral):
        return TypeTag.integer
    if issubclass(tp, (numbers.Real, decimal.Decimal)):
        return TypeTag.number
    if _is_sequence_type(tp):
        return TypeTag.array
    return TypeTag.object


def map_type(semantic_type: Any) -> TypeTag:
    """Map a semantic type to its schema type tag.

    Args:
        semantic_type: A Python annotation, a textual type name, or ``None``.

    Returns:
        The single ``TypeTag`` for the type; unrecognized types map to ``object``.
    """
    if semantic_type is None:
        return TypeTag.object
    if isinstance(semantic_type, TypeTag):
        return semantic_type
    if isinstance(semantic_type, str):
        return _map_name(semantic_type)

    tp, _ = unwrap_annotation(semantic_type)
    origin = get_origin(tp)
    if origin is Literal:
        tags = {map_type(type(value)) for value in get_args(tp)}
        return tags.pop() if len(tags) == 1 else TypeTag.object
    if origin is not None:
        return TypeTag.array if _is_sequence_type(origin) else TypeTag.object
    if isinstance(tp, type):
        return _map_class(tp)
    return TypeTag.object


def element_type(semantic_type: Any) -> Optional[TypeTag]:
    """Return the element tag of an array type when it can be determined."""
    if map_type(semantic_type) is not TypeTag.array:
        return None

    if isinstance(semantic_type, str):
        text, _ = unwrap_type_name(semantic_type)
        suffix = _SUFFIX_ARRAY_NAME.match(text)
        if suffix:
            return map_type(suffix.group(1))
        generic = _GENERIC_NAME.match(text)
        if generic and generic.group(2) and "," not in generic.group(2):
            return map_type(generic.group(2))
        return None

    tp, _ = unwrap_annotation(semantic_type)
    args = [a for a in get_args(tp) if a is not Ellipsis]
    if not args:
        return None
    tags = {map_type(a) for a in args}
    return tags.pop() if len(tags) == 1 else None
