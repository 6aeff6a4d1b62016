"""Parameter schema builder.

Assembles the published, machine-readable description of a capability from
its declared parameters, and offers explicit construction helpers that replace
attribute-driven code generation:

- ``parameter``: build one ``ParameterDescriptor`` from a semantic type.
- ``describe_callable``: derive a ``CapabilityDescriptor`` from a Python
  function signature (annotations, defaults, ``Annotated`` descriptions).
- ``parameters_from_model``: derive parameters from a pydantic input model.
- ``build_parameter_schema`` / ``build_function_schema`` / ``render_schema``:
  produce the schema object and its canonical text.

Every function here is pure; building the schema for the same descriptor
twice yields byte-identical text.
"""

from __future__ import annotations

import inspect
import json
from typing import (
    Annotated,
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Tuple,
    Type,
    get_args,
    get_origin,
    get_type_hints,
)

from pydantic import BaseModel
from pydantic.fields import FieldInfo

from ..schemas.domain import CapabilityDescriptor, ParameterDescriptor, TypeTag
from .type_mapper import element_type, map_type, unwrap_annotation, unwrap_type_name

_SKIPPED_KINDS = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


def parameter(
    name: str,
    semantic_type: Any = None,
    description: str = "",
    *,
    optional: bool = False,
    default: Any = None,
) -> ParameterDescriptor:
    """Build a parameter descriptor, resolving its type tag through the mapper.

    ``Optional[...]`` annotations and ``Option<...>`` type names mark the
    parameter optional even when ``optional`` is not passed.
    """
    if isinstance(semantic_type, str):
        _, nullable = unwrap_type_name(semantic_type)
    else:
        _, nullable = unwrap_annotation(semantic_type)
    return ParameterDescriptor(
        name=name,
        type_tag=map_type(semantic_type),
        description=description,
        optional=optional or nullable,
        default_value=default,
        items=element_type(semantic_type),
    )


def _annotated_description(annotation: Any) -> str:
    if get_origin(annotation) is not Annotated:
        return ""
    for meta in get_args(annotation)[1:]:
        if isinstance(meta, str):
            return meta
        if isinstance(meta, FieldInfo) and meta.description:
            return meta.description
    return ""


def _docstring_summary(fn: Callable[..., Any]) -> str:
    doc = inspect.getdoc(fn) or ""
    return doc.split("\n\n", 1)[0].replace("\n", " ").strip()


def _jsonable_default(value: Any) -> Any:
    if value is inspect.Parameter.empty:
        return None
    if isinstance(value, FieldInfo):
        return None if value.is_required() else value.get_default(call_default_factory=True)
    return value


def parameters_from_callable(fn: Callable[..., Any]) -> Tuple[ParameterDescriptor, ...]:
    """Derive ordered parameter descriptors from a callable's signature.

    ``*args``/``**kwargs`` and a leading ``self``/``cls`` are not published.
    """
    signature = inspect.signature(fn)
    try:
        hints = get_type_hints(fn, include_extras=True)
    except (NameError, TypeError):
        hints = {}

    params: List[ParameterDescriptor] = []
    for name, sig_param in signature.parameters.items():
        if sig_param.kind in _SKIPPED_KINDS or name in ("self", "cls"):
            continue
        annotation = hints.get(name, sig_param.annotation)
        if annotation is inspect.Parameter.empty:
            annotation = None
        description = _annotated_description(annotation)
        if not description and isinstance(sig_param.default, FieldInfo):
            description = sig_param.default.description or ""
        default = _jsonable_default(sig_param.default)
        has_default = sig_param.default is not inspect.Parameter.empty and not (
            isinstance(sig_param.default, FieldInfo) and sig_param.default.is_required()
        )
        param = parameter(name, annotation, description, default=default)
        if has_default and default is None and not param.optional:
            param = param.model_copy(update={"optional": True})
        params.append(param)
    return tuple(params)


def parameters_from_model(model: Type[BaseModel]) -> Tuple[ParameterDescriptor, ...]:
    """Derive parameter descriptors from a pydantic input model's fields."""
    params: List[ParameterDescriptor] = []
    for name, field in model.model_fields.items():
        required = field.is_required()
        default = None if required else field.get_default(call_default_factory=True)
        param = parameter(name, field.annotation, field.description or "", default=default)
        if not required and default is None and not param.optional:
            param = param.model_copy(update={"optional": True})
        params.append(param)
    return tuple(params)


def describe_callable(
    fn: Callable[..., Any],
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    plugin_name: Optional[str] = None,
    requires_permission: bool = False,
    required_permissions: Iterable[str] = (),
    parameters: Optional[Iterable[ParameterDescriptor]] = None,
) -> CapabilityDescriptor:
    """Build a ``CapabilityDescriptor`` for a Python callable.

    Args:
        fn: The executor that will be registered with the descriptor.
        name: Capability name (defaults to ``fn.__name__``).
        description: Capability description (defaults to the docstring summary).
        plugin_name: Optional plugin grouping label.
        requires_permission: Permission metadata flag.
        required_permissions: Permission names (metadata only).
        parameters: Explicit parameters overriding signature inspection.

    Returns:
        The immutable descriptor.
    """
    is_async = inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(getattr(fn, "__call__", None))
    return CapabilityDescriptor(
        name=name or getattr(fn, "__name__", type(fn).__name__),
        description=description if description is not None else _docstring_summary(fn),
        parameters=tuple(parameters) if parameters is not None else parameters_from_callable(fn),
        requires_permission=requires_permission,
        required_permissions=frozenset(required_permissions),
        is_asynchronous=is_async,
        plugin_name=plugin_name,
    )


def build_parameter_schema(parameters: Iterable[ParameterDescriptor]) -> Dict[str, Any]:
    """Build the ``{"type":"object","properties":...,"required":[...]}`` object."""
    properties: Dict[str, Any] = {}
    required: List[str] = []
    for param in parameters:
        prop: Dict[str, Any] = {"type": param.type_tag.value}
        if param.description:
            prop["description"] = param.description
        if param.type_tag is TypeTag.array and param.items is not None:
            prop["items"] = {"type": param.items.value}
        if param.default_value is not None:
            prop["default"] = param.default_value
        properties[param.name] = prop
        if param.required:
            required.append(param.name)
    return {"type": "object", "properties": properties, "required": required}


def build_function_schema(descriptor: CapabilityDescriptor) -> Dict[str, Any]:
    """Build the published function schema for a capability."""
    return {
        "type": "function",
        "function": {
            "name": descriptor.name,
            "description": descriptor.description,
            "parameters": build_parameter_schema(descriptor.parameters),
        },
    }


def render_schema(descriptor: CapabilityDescriptor) -> str:
    """Render the function schema as canonical compact JSON text."""
    return json.dumps(build_function_schema(descriptor), separators=(",", ":"), ensure_ascii=False, default=str)
