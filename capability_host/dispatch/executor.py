"""Dispatch executor.

Turns ``invoke(name, payload)`` into a safe capability call:

1. Decode the payload (JSON text or an already-decoded mapping).
2. Resolve the capability through the ``CapabilityRegistry``.
3. Coerce the payload with the ``ArgumentCoercer``.
4. Consult the optional ``PermissionPolicy``.
5. Run the executor: coroutine executors are awaited; synchronous executors
   run on the calling task, or on a worker thread when ``offload_sync`` is set.
6. Render the outcome into the result envelope.

Every failure, including unexpected faults raised by an executor, comes back
as a ``DispatchResult`` with a stable ``ErrorKind``; nothing escapes ``invoke``
except task cancellation and ``KeyboardInterrupt``; ``SystemExit`` raised by a
capability is reported as ``ExecutionFailure`` like any other fault.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import functools
import inspect
import json
from typing import Any, Dict, Mapping, Optional, Union

from ..capabilities.base import RegisteredCapability
from ..capabilities.registry import CapabilityRegistry
from ..core.logging_config import get_logger
from ..errors import (
    DispatchError,
    ExecutionFailureError,
    MalformedArgumentsError,
    SerializationFailureError,
    UnknownCapabilityError,
)
from ..schemas.domain import DispatchResult, ErrorKind
from .coercer import ArgumentCoercer
from .envelope import render_error, render_success
from .policy import PermissionPolicy

logger = get_logger(__name__)

Payload = Union[str, bytes, Mapping[str, Any], None]


def parse_payload(payload: Payload) -> Dict[str, Any]:
    """
    Decode an untyped payload into a keyed mapping.

    Empty text and ``None`` mean "no arguments".

    Raises:
        MalformedArgumentsError: If the text is not JSON or not a JSON object.
    """
    if payload is None:
        return {}
    if isinstance(payload, Mapping):
        return dict(payload)
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedArgumentsError(f"Payload is not valid UTF-8: {exc}") from exc
    if not isinstance(payload, str):
        raise MalformedArgumentsError(f"Payload must be JSON text or a mapping, got {type(payload).__name__}")
    if not payload.strip():
        return {}
    try:
        decoded = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedArgumentsError(f"Payload is not valid JSON: {exc.msg} at position {exc.pos}") from exc
    if not isinstance(decoded, dict):
        raise MalformedArgumentsError(f"Payload must be a JSON object, got {type(decoded).__name__}")
    return decoded


class DispatchExecutor:
    """Validates, runs and serializes capability calls.

    The dispatcher holds no per-call state; concurrent ``invoke`` calls share
    only the registry, which is safe for concurrent reads.
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        *,
        coercer: Optional[ArgumentCoercer] = None,
        permission_policy: Optional[PermissionPolicy] = None,
        offload_sync: bool = False,
    ) -> None:
        self._registry = registry
        self._coercer = coercer or ArgumentCoercer()
        self._permission_policy = permission_policy
        self._offload_sync = offload_sync

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    async def invoke(self, name: str, payload: Payload = None) -> DispatchResult:
        """
        Invoke a capability by name with an untyped payload.

        Args:
            name: Registered capability name.
            payload: JSON object text, bytes, or an already-decoded mapping.

        Returns:
            DispatchResult: ``ok=True`` with the success envelope, or ``ok=False``
            with the error kind, message, violations and error envelope.
        """
        logger.debug(f"Dispatching capability: {name}")
        try:
            text = await self._dispatch(name, payload)
        except DispatchError as exc:
            logger.warning(f"Capability '{name}' dispatch failed [{exc.kind.value}]: {exc}")
            return self._failure(exc.kind, str(exc), exc)
        except Exception as exc:
            logger.exception(f"Unexpected fault while dispatching capability '{name}'")
            return self._failure(ErrorKind.execution_failure, f"Internal dispatch fault: {type(exc).__name__}: {exc}")

        logger.debug(f"Capability '{name}' completed")
        return DispatchResult(ok=True, text=text)

    def invoke_threadsafe(
        self, name: str, payload: Payload, loop: asyncio.AbstractEventLoop
    ) -> concurrent.futures.Future[DispatchResult]:
        """Submit a dispatch to ``loop`` from another thread."""
        return asyncio.run_coroutine_threadsafe(self.invoke(name, payload), loop)

    def invoke_blocking(self, name: str, payload: Payload = None) -> DispatchResult:
        """Run a dispatch to completion from synchronous code with no running loop."""
        return asyncio.run(self.invoke(name, payload))

    async def _dispatch(self, name: str, payload: Payload) -> str:
        arguments_payload = parse_payload(payload)

        entry = self._registry.lookup(name)
        if entry is None:
            raise UnknownCapabilityError(name)

        arguments = self._coercer.coerce(entry.descriptor, arguments_payload)
        if self._permission_policy is not None:
            self._permission_policy.check(entry.descriptor, arguments)

        value = await self._execute(entry, arguments)
        try:
            return render_success(value)
        except (TypeError, ValueError, RecursionError) as exc:
            raise SerializationFailureError(name, str(exc)) from exc

    async def _execute(self, entry: RegisteredCapability, arguments: Dict[str, Any]) -> Any:
        try:
            if not entry.descriptor.is_asynchronous and self._offload_sync:
                result = await asyncio.to_thread(functools.partial(entry.executor, **arguments))
            else:
                result = entry.executor(**arguments)
            if inspect.isawaitable(result):
                result = await result
        except (asyncio.CancelledError, KeyboardInterrupt):
            raise
        except BaseException as exc:
            # includes SystemExit
            logger.exception(f"Capability '{entry.name}' raised {type(exc).__name__}")
            raise ExecutionFailureError(entry.name, f"{type(exc).__name__}: {exc}") from exc
        return result

    @staticmethod
    def _failure(kind: ErrorKind, message: str, exc: Optional[DispatchError] = None) -> DispatchResult:
        return DispatchResult(
            ok=False,
            text=render_error(message),
            error_kind=kind,
            message=message,
            violations=exc.violations if exc is not None else (),
        )
