"""Pydantic models shared by the registry, the dispatcher and the streaming bridge."""

from .base import BaseSchema, FrozenSchema
from .domain import (
    ArgumentViolation,
    CapabilityDescriptor,
    DispatchResult,
    ErrorKind,
    ParameterDescriptor,
    PluginSummary,
    RegistryStats,
    SessionState,
    TypeTag,
)

__all__ = [
    "ArgumentViolation",
    "BaseSchema",
    "CapabilityDescriptor",
    "DispatchResult",
    "ErrorKind",
    "FrozenSchema",
    "ParameterDescriptor",
    "PluginSummary",
    "RegistryStats",
    "SessionState",
    "TypeTag",
]
