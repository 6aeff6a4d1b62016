"""Error types for the capability host.

Defines a small hierarchy of exceptions raised by the registry, the argument
coercer, the dispatcher and the streaming bridge. Dispatch errors carry the
``ErrorKind`` they are reported as; ``DispatchExecutor.invoke`` converts them
into a ``DispatchResult`` instead of letting them escape.
"""

from __future__ import annotations

from typing import ClassVar, Iterable, List, Optional, Tuple

from .schemas.domain import ArgumentViolation, ErrorKind


class CapabilityHostError(Exception):
    """Base error for all capability host exceptions."""


class DuplicateCapabilityError(CapabilityHostError):
    """Raised when a capability name is registered twice under the reject policy."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Capability already registered: '{name}'")
        self.name = name


class DispatchError(CapabilityHostError):
    """Base error for failures reported through ``invoke``."""

    kind: ClassVar[ErrorKind]

    @property
    def violations(self) -> Tuple[ArgumentViolation, ...]:
        return ()


class UnknownCapabilityError(DispatchError):
    """Raised when no capability is registered under the requested name."""

    kind = ErrorKind.unknown_capability

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown capability: '{name}'")
        self.name = name


class MalformedArgumentsError(DispatchError):
    """Raised when the payload cannot be parsed or one or more parameters are invalid."""

    kind = ErrorKind.malformed_arguments

    def __init__(self, message: str, violations: Optional[Iterable[ArgumentViolation]] = None) -> None:
        self._violations = tuple(violations or ())
        if self._violations:
            details = "; ".join(f"{v.parameter}: {v.reason}" for v in self._violations)
            message = f"{message} ({details})"
        super().__init__(message)

    @property
    def violations(self) -> Tuple[ArgumentViolation, ...]:
        return self._violations

    @property
    def parameters(self) -> List[str]:
        return [v.parameter for v in self._violations]


class ExecutionFailureError(DispatchError):
    """Raised when a capability executor fails."""

    kind = ErrorKind.execution_failure

    def __init__(self, name: str, message: str) -> None:
        super().__init__(f"Capability '{name}' failed: {message}")
        self.name = name


class SerializationFailureError(DispatchError):
    """Raised when a capability result cannot be rendered to text."""

    kind = ErrorKind.serialization_failure

    def __init__(self, name: str, message: str) -> None:
        super().__init__(f"Result of capability '{name}' could not be serialized: {message}")
        self.name = name


class PermissionDeniedError(DispatchError):
    """Raised by a permission policy to block a capability before it runs."""

    kind = ErrorKind.permission_denied

    def __init__(self, name: str, reason: str = "permission denied") -> None:
        super().__init__(f"Capability '{name}' is not permitted: {reason}")
        self.name = name


class StreamFailedError(CapabilityHostError):
    """Surfaced once to a stream consumer when the producer fails the session."""

    def __init__(self, token: str, reason: str) -> None:
        super().__init__(reason)
        self.token = token
        self.reason = reason
