"""Executor protocol and registry entry model.

A capability is a (descriptor, executor) pair. The executor receives the
coerced arguments as keyword arguments and returns any value the dispatcher
can render to text. Asynchronous executors are coroutine functions; they
suspend without blocking other dispatches.

Executors should:

- raise on failure rather than encode errors in their return value,
- avoid performing permission decisions themselves (a policy configured on
  the dispatcher runs before invocation).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Protocol, Union

from ..schemas.domain import CapabilityDescriptor


class Executor(Protocol):
    """Protocol for capability implementations."""

    def __call__(self, **arguments: Any) -> Union[Any, Awaitable[Any]]: ...


@dataclass(frozen=True)
class RegisteredCapability:
    """Registry entry binding a descriptor to its executor.

    Attributes
    ----------
    descriptor:
        The immutable published metadata.
    executor:
        The callable invoked with the coerced arguments.
    """

    descriptor: CapabilityDescriptor
    executor: Executor

    @property
    def name(self) -> str:
        return self.descriptor.name
