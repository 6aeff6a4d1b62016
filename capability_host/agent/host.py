"""Scoped owner of one ``AgentHandle``.

``AgentHost`` creates the agent with the registry's function schemas on
``async with`` entry and destroys it exactly once on exit, whether the block
returns, raises or is cancelled. While open it:

- streams the agent's events for a message through the ``StreamingBridge``,
  running the blocking ``send`` on a worker thread;
- lets the agent call capabilities from its own threads through the
  ``DispatchExecutor``;
- relays permission answers back to the agent.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Set

from ..capabilities.registry import CapabilityRegistry
from ..core.logging_config import get_logger
from ..dispatch.executor import DispatchExecutor, Payload
from ..schemas.domain import DispatchResult
from ..streaming.bridge import StreamingBridge, StreamSequence
from .handle import AgentConfig, AgentHandle, PermissionChoice, PermissionResponse

logger = get_logger(__name__)


class AgentHost:
    """Owns an agent handle for the duration of an ``async with`` block."""

    def __init__(
        self,
        handle: AgentHandle,
        config: AgentConfig,
        *,
        registry: CapabilityRegistry,
        dispatcher: Optional[DispatchExecutor] = None,
        bridge: Optional[StreamingBridge] = None,
        shutdown_timeout: float = 5.0,
    ) -> None:
        self._handle = handle
        self._config = config
        self._registry = registry
        self._dispatcher = dispatcher or DispatchExecutor(registry)
        self._bridge = bridge or StreamingBridge()
        self._shutdown_timeout = shutdown_timeout
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._created = False
        self._destroyed = False
        self._runs: Set[asyncio.Future] = set()
        self._run_tokens: Set[str] = set()

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def bridge(self) -> StreamingBridge:
        return self._bridge

    @property
    def dispatcher(self) -> DispatchExecutor:
        return self._dispatcher

    @property
    def is_open(self) -> bool:
        return self._created and not self._destroyed

    async def open(self) -> AgentHost:
        """Create the agent with the current capability schemas."""
        if self._created:
            raise RuntimeError(f"Agent host '{self._config.name}' was already opened")
        self._loop = asyncio.get_running_loop()
        schemas = self._registry.schemas()
        logger.info(f"Creating agent '{self._config.name}' with {len(schemas)} capabilities")
        await asyncio.to_thread(self._handle.create, self._config, schemas)
        self._created = True
        return self

    async def close(self) -> None:
        """Cancel outstanding streams and destroy the agent (at most once)."""
        if not self._created or self._destroyed:
            return
        self._destroyed = True

        for token in list(self._run_tokens):
            # open streams end with an error; later pushes from send are no-ops
            self._bridge.fail(token, "agent host closed")
        self._run_tokens.clear()

        if self._runs:
            _, pending = await asyncio.wait(set(self._runs), timeout=self._shutdown_timeout)
            if pending:
                logger.warning(f"Agent '{self._config.name}': {len(pending)} send call(s) still running at shutdown")

        logger.info(f"Destroying agent '{self._config.name}'")
        await asyncio.to_thread(self._handle.destroy)

    async def __aenter__(self) -> AgentHost:
        return await self.open()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        # shielded so a cancelled block still releases the agent exactly once
        await asyncio.shield(self.close())

    def run(self, message: str) -> StreamSequence:
        """
        Send one message and stream the agent's events.

        Must be called on the event loop that opened the host.

        Returns:
            StreamSequence: Event texts in production order. If ``send``
            raises, the sequence raises ``StreamFailedError`` after the events
            produced before the failure.
        """
        self._ensure_open()
        token, stream = self._bridge.open_session()
        on_event = self._bridge.callback(token)
        self._run_tokens.add(token)

        def produce() -> None:
            try:
                self._handle.send(message, on_event)
            except Exception as exc:
                logger.warning(f"Agent '{self._config.name}' send failed: {type(exc).__name__}: {exc}")
                self._bridge.fail(token, f"{type(exc).__name__}: {exc}")
            else:
                self._bridge.end(token)

        future = self._loop.run_in_executor(None, produce)
        self._runs.add(future)

        def _done(fut: asyncio.Future) -> None:
            self._runs.discard(fut)
            self._run_tokens.discard(token)

        future.add_done_callback(_done)
        return stream

    def invoke_capability(self, name: str, payload: Payload = None) -> str:
        """
        Invoke a capability on behalf of the agent, from the agent's own thread.

        Blocks until the dispatch completes on the host's event loop.

        Returns:
            str: The result envelope text.
        """
        self._ensure_open()
        if self._on_loop_thread():
            raise RuntimeError("invoke_capability blocks; use ainvoke_capability on the event loop")
        future = self._dispatcher.invoke_threadsafe(name, payload, self._loop)
        result: DispatchResult = future.result()
        return result.text

    async def ainvoke_capability(self, name: str, payload: Payload = None) -> str:
        self._ensure_open()
        result = await self._dispatcher.invoke(name, payload)
        return result.text

    def respond_to_permission(
        self,
        permission_id: str,
        approved: bool,
        choice: PermissionChoice = PermissionChoice.ask,
        reason: Optional[str] = None,
    ) -> PermissionResponse:
        """Relay a permission answer to the agent."""
        self._ensure_open()
        response = PermissionResponse(permission_id=permission_id, approved=approved, choice=choice, reason=reason)
        event: dict[str, Any] = response.model_dump(mode="json")
        self._handle.push_event(permission_id, event)
        logger.debug(f"Permission {permission_id} answered: approved={approved}, choice={choice.value}")
        return response

    def _ensure_open(self) -> None:
        if not self.is_open:
            raise RuntimeError(f"Agent host '{self._config.name}' is not open")

    def _on_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False
