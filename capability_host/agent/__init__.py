"""Agent handle abstraction and its scoped host."""

from .handle import AgentConfig, AgentHandle, EventCallback, PermissionChoice, PermissionResponse
from .host import AgentHost

__all__ = [
    "AgentConfig",
    "AgentHandle",
    "AgentHost",
    "EventCallback",
    "PermissionChoice",
    "PermissionResponse",
]
