from __future__ import annotations

import json
from enum import Enum
from typing import Any, FrozenSet, List, Optional, Tuple

from pydantic import Field, field_validator, model_validator

from .base import BaseSchema, FrozenSchema


class TypeTag(str, Enum):
    string = "string"
    integer = "integer"
    number = "number"
    boolean = "boolean"
    array = "array"
    object = "object"


class ErrorKind(str, Enum):
    unknown_capability = "UnknownCapability"
    malformed_arguments = "MalformedArguments"
    execution_failure = "ExecutionFailure"
    serialization_failure = "SerializationFailure"
    permission_denied = "PermissionDenied"


class SessionState(str, Enum):
    open = "open"
    ended = "ended"
    errored = "errored"
    cancelled = "cancelled"


class ParameterDescriptor(FrozenSchema):
    """Published description of one capability parameter."""

    name: str = Field(..., min_length=1, description="Parameter name, unique within a capability")
    type_tag: TypeTag = Field(default=TypeTag.object, description="Schema type tag")
    description: str = Field(default="", description="Human-readable parameter description")
    optional: bool = Field(default=False, description="Whether the caller may omit the parameter")
    default_value: Optional[Any] = Field(default=None, description="Value used when the parameter is omitted")
    items: Optional[TypeTag] = Field(default=None, description="Element type tag for array parameters")

    @property
    def required(self) -> bool:
        """A parameter is required iff it is neither optional nor has a default value."""
        return not self.optional and self.default_value is None


class CapabilityDescriptor(FrozenSchema):
    """
    Immutable metadata record for a registered capability.

    Created once at registration time. ``required_permissions`` is metadata
    only; a non-empty set implies ``requires_permission``.
    """

    name: str = Field(..., min_length=1, description="Registry-unique capability name")
    description: str = Field(default="", description="Human-readable capability description")
    parameters: Tuple[ParameterDescriptor, ...] = Field(default=(), description="Ordered parameter descriptors")
    requires_permission: bool = Field(default=False, description="Whether the capability is permission-gated")
    required_permissions: FrozenSet[str] = Field(default=frozenset(), description="Permission names")
    is_asynchronous: bool = Field(default=False, description="Whether the executor is a coroutine function")
    plugin_name: Optional[str] = Field(default=None, description="Optional plugin grouping label")

    @model_validator(mode="before")
    @classmethod
    def _permissions_imply_flag(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("required_permissions") and not data.get("requires_permission"):
            data = {**data, "requires_permission": True}
        return data

    @field_validator("name")
    @classmethod
    def _name_has_no_whitespace(cls, value: str) -> str:
        if value != value.strip() or not value.strip():
            raise ValueError("capability name must be non-blank and carry no surrounding whitespace")
        return value

    @field_validator("parameters")
    @classmethod
    def _unique_parameter_names(cls, value: Tuple[ParameterDescriptor, ...]) -> Tuple[ParameterDescriptor, ...]:
        seen: set[str] = set()
        duplicates: List[str] = []
        for param in value:
            if param.name in seen and param.name not in duplicates:
                duplicates.append(param.name)
            seen.add(param.name)
        if duplicates:
            raise ValueError(f"duplicate parameter names: {', '.join(duplicates)}")
        return value

    def parameter(self, name: str) -> Optional[ParameterDescriptor]:
        for param in self.parameters:
            if param.name == name:
                return param
        return None

    @property
    def required_parameters(self) -> List[str]:
        return [p.name for p in self.parameters if p.required]


class ArgumentViolation(FrozenSchema):
    parameter: str
    reason: str


class DispatchResult(BaseSchema):
    """
    Outcome of a single ``invoke`` call.

    ``text`` always holds the wire envelope: ``{"success":true,"result":...}``
    on success and ``{"success":false,"error":...}`` on failure.
    """

    ok: bool
    text: str
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    violations: Tuple[ArgumentViolation, ...] = ()

    @property
    def violated_parameters(self) -> List[str]:
        return [v.parameter for v in self.violations]

    def envelope(self) -> Any:
        """Decode ``text`` back into its structured form."""
        return json.loads(self.text)


class PluginSummary(BaseSchema):
    name: str
    function_count: int
    functions: List[str] = Field(default_factory=list)


class RegistryStats(BaseSchema):
    total_capabilities: int = 0
    total_plugins: int = 0
    plugins: List[PluginSummary] = Field(default_factory=list)
