"""Capability host.

This package lets a host process expose independently implemented
operations ("capabilities") to a conversational agent that only knows
capability names and untyped JSON payloads, and streams the agent's
incremental output back to async consumers.

High-level architecture
-----------------------

- **Capability Registry** (``capability_host.capabilities``): name ->
  (descriptor, executor). Descriptors carry typed parameter metadata and
  render the function schemas handed to the agent.
- **Dispatch Executor** (``capability_host.dispatch``): decodes a payload,
  coerces it against the descriptor, runs the executor, and returns a JSON
  result envelope. Faults never escape a dispatch.
- **Streaming Bridge** (``capability_host.streaming``): turns pushes from any
  thread into an ordered, cancellable async sequence per session.
- **Agent host** (``capability_host.agent``): scoped owner of an external
  agent handle tying the three together.

Typical workflow
----------------

1. ``host = setup_capability_host()`` loads settings, configures logging and
   registers the built-in plugins.
2. Register your own capabilities with ``describe_callable`` and
   ``host.registry.register``.
3. ``async with host.agent_host(handle, AgentConfig(name="assistant")) as agent``
   creates the agent with every registered function schema.
4. ``async for event in agent.run("message")`` streams the agent's events.
"""

from .agent import AgentConfig, AgentHandle, AgentHost, PermissionChoice
from .capabilities import CapabilityRegistry, describe_callable, parameter
from .dispatch import DispatchExecutor
from .errors import (
    CapabilityHostError,
    DispatchError,
    DuplicateCapabilityError,
    StreamFailedError,
    UnknownCapabilityError,
)
from .initialization import CapabilityHost, setup_capability_host
from .schemas import CapabilityDescriptor, DispatchResult, ErrorKind, ParameterDescriptor, TypeTag
from .streaming import StreamingBridge, StreamSequence

__version__ = "0.1.0"

__all__ = [
    "AgentConfig",
    "AgentHandle",
    "AgentHost",
    "CapabilityDescriptor",
    "CapabilityHost",
    "CapabilityHostError",
    "CapabilityRegistry",
    "DispatchError",
    "DispatchExecutor",
    "DispatchResult",
    "DuplicateCapabilityError",
    "ErrorKind",
    "ParameterDescriptor",
    "PermissionChoice",
    "StreamFailedError",
    "StreamSequence",
    "StreamingBridge",
    "TypeTag",
    "UnknownCapabilityError",
    "describe_callable",
    "parameter",
    "setup_capability_host",
]
