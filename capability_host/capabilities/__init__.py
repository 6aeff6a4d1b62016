"""Capability registry and schema metadata.

A *capability* is a named, independently implemented operation exposed to a
caller that only knows capability names and untyped payloads.

- ``type_mapper`` resolves semantic parameter types to schema type tags.
- ``schema_builder`` builds descriptors and their published function schemas.
- ``CapabilityRegistry`` maps names to (descriptor, executor) pairs.

This package exports:

- ``CapabilityRegistry`` / ``RegisteredCapability`` / ``Executor``.
- ``parameter``, ``describe_callable``, ``parameters_from_model``,
  ``build_function_schema``, ``render_schema``.
- ``map_type``.
"""

from .base import Executor, RegisteredCapability
from .registry import CapabilityRegistry
from .schema_builder import (
    build_function_schema,
    build_parameter_schema,
    describe_callable,
    parameter,
    parameters_from_callable,
    parameters_from_model,
    render_schema,
)
from .type_mapper import element_type, map_type

__all__ = [
    "CapabilityRegistry",
    "Executor",
    "RegisteredCapability",
    "build_function_schema",
    "build_parameter_schema",
    "describe_callable",
    "element_type",
    "map_type",
    "parameter",
    "parameters_from_callable",
    "parameters_from_model",
    "render_schema",
]
