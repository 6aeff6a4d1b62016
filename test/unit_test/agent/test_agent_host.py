from __future__ import annotations

import asyncio
import threading
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pytest
from pydantic import ValidationError

from capability_host.agent.handle import AgentConfig, AgentHandle, EventCallback, PermissionChoice, PermissionResponse
from capability_host.agent.host import AgentHost
from capability_host.capabilities.registry import CapabilityRegistry
from capability_host.errors import StreamFailedError


class FakeAgentHandle(AgentHandle):
    """Records every call; ``send`` replays canned events."""

    def __init__(self, events: Optional[List[str]] = None, error: Optional[Exception] = None) -> None:
        self.events = events or []
        self.error = error
        self.created_with: Optional[Tuple[AgentConfig, List[Dict[str, Any]]]] = None
        self.messages: List[str] = []
        self.pushed: List[Tuple[str, Dict[str, Any]]] = []
        self.destroy_calls = 0

    def create(self, config: AgentConfig, capabilities: List[Dict[str, Any]]) -> None:
        self.created_with = (config, capabilities)

    def send(self, message: str, on_event: EventCallback) -> None:
        self.messages.append(message)
        for event in self.events:
            on_event(event)
        if self.error is not None:
            raise self.error
        on_event(None)

    def push_event(self, event_id: str, event: Mapping[str, Any]) -> None:
        self.pushed.append((event_id, dict(event)))

    def destroy(self) -> None:
        self.destroy_calls += 1


class BlockingAgentHandle(FakeAgentHandle):
    def __init__(self) -> None:
        super().__init__()
        self.release = threading.Event()

    def send(self, message: str, on_event: EventCallback) -> None:
        on_event("first")
        self.release.wait(timeout=5)
        on_event("late")
        on_event(None)


class FailingCreateHandle(FakeAgentHandle):
    def create(self, config: AgentConfig, capabilities: List[Dict[str, Any]]) -> None:
        raise RuntimeError("no engine")


@pytest.fixture
def config() -> AgentConfig:
    return AgentConfig(name="assistant", model="gpt-4o", provider="openai", instructions="Be brief")


def _host(handle: AgentHandle, config: AgentConfig, registry: CapabilityRegistry, **kwargs) -> AgentHost:
    return AgentHost(handle, config, registry=registry, **kwargs)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_create_receives_config_and_schemas(self, config, registry) -> None:
        handle = FakeAgentHandle()
        async with _host(handle, config, registry) as host:
            assert host.is_open is True
            created_config, capabilities = handle.created_with
            assert created_config is config
            assert [c["function"]["name"] for c in capabilities] == registry.names()

        assert handle.destroy_calls == 1
        assert host.is_open is False

    @pytest.mark.asyncio
    async def test_destroy_once_when_block_raises(self, config, registry) -> None:
        handle = FakeAgentHandle()
        with pytest.raises(ValueError):
            async with _host(handle, config, registry):
                raise ValueError("boom")
        assert handle.destroy_calls == 1

    @pytest.mark.asyncio
    async def test_destroy_once_when_task_cancelled(self, config, registry) -> None:
        handle = FakeAgentHandle()
        entered = asyncio.Event()

        async def body() -> None:
            async with _host(handle, config, registry):
                entered.set()
                await asyncio.sleep(10)

        task = asyncio.create_task(body())
        await entered.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert handle.destroy_calls == 1

    @pytest.mark.asyncio
    async def test_explicit_close_then_exit_destroys_once(self, config, registry) -> None:
        handle = FakeAgentHandle()
        async with _host(handle, config, registry) as host:
            await host.close()
            await host.close()
        assert handle.destroy_calls == 1

    @pytest.mark.asyncio
    async def test_failed_create_propagates_without_destroy(self, config, registry) -> None:
        handle = FailingCreateHandle()
        with pytest.raises(RuntimeError, match="no engine"):
            async with _host(handle, config, registry):
                pass  # pragma: no cover
        assert handle.destroy_calls == 0

    @pytest.mark.asyncio
    async def test_cannot_open_twice(self, config, registry) -> None:
        host = _host(FakeAgentHandle(), config, registry)
        await host.open()
        with pytest.raises(RuntimeError):
            await host.open()
        await host.close()

    @pytest.mark.asyncio
    async def test_operations_require_open_host(self, config, registry) -> None:
        host = _host(FakeAgentHandle(), config, registry)
        with pytest.raises(RuntimeError, match="not open"):
            host.run("hi")
        with pytest.raises(RuntimeError, match="not open"):
            host.respond_to_permission("p1", True)


class TestRun:
    @pytest.mark.asyncio
    async def test_events_are_streamed_then_end(self, config, registry) -> None:
        handle = FakeAgentHandle(events=['{"type":"text","delta":"he"}', '{"type":"text","delta":"llo"}'])
        async with _host(handle, config, registry) as host:
            events = [event async for event in host.run("hello")]

        assert events == ['{"type":"text","delta":"he"}', '{"type":"text","delta":"llo"}']
        assert handle.messages == ["hello"]

    @pytest.mark.asyncio
    async def test_send_failure_surfaces_after_events(self, config, registry) -> None:
        handle = FakeAgentHandle(events=["partial"], error=ConnectionError("engine gone"))
        received = []
        async with _host(handle, config, registry) as host:
            with pytest.raises(StreamFailedError, match="ConnectionError: engine gone"):
                async for event in host.run("hi"):
                    received.append(event)

        assert received == ["partial"]
        assert handle.destroy_calls == 1

    @pytest.mark.asyncio
    async def test_send_runs_off_the_event_loop_thread(self, config, registry) -> None:
        threads = []

        class ThreadRecordingHandle(FakeAgentHandle):
            def send(self, message: str, on_event: EventCallback) -> None:
                threads.append(threading.get_ident())
                on_event(None)

        async with _host(ThreadRecordingHandle(), config, registry) as host:
            assert [e async for e in host.run("x")] == []

        assert threads and threads[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_close_fails_open_streams_and_ignores_late_events(self, config, registry) -> None:
        handle = BlockingAgentHandle()
        async with _host(handle, config, registry, shutdown_timeout=0.05) as host:
            stream = host.run("hi")
            assert await stream.__anext__() == "first"

        with pytest.raises(StreamFailedError, match="agent host closed"):
            await stream.__anext__()
        handle.release.set()
        assert handle.destroy_calls == 1
        assert host.bridge.active_sessions() == 0


class TestCapabilitiesAndPermissions:
    @pytest.mark.asyncio
    async def test_invoke_capability_from_agent_thread(self, config, registry) -> None:
        replies = []

        class ToolCallingHandle(FakeAgentHandle):
            host: AgentHost

            def send(self, message: str, on_event: EventCallback) -> None:
                reply = self.host.invoke_capability("add", message)
                replies.append(reply)
                on_event(reply)
                on_event(None)

        handle = ToolCallingHandle()
        async with _host(handle, config, registry) as host:
            handle.host = host
            events = [e async for e in host.run('{"a": 2, "b": 3}')]

        assert replies == ['{"success":true,"result":5}']
        assert events == replies

    @pytest.mark.asyncio
    async def test_invoke_capability_on_loop_thread_is_rejected(self, config, registry) -> None:
        async with _host(FakeAgentHandle(), config, registry) as host:
            with pytest.raises(RuntimeError, match="ainvoke_capability"):
                host.invoke_capability("add", {"a": 1, "b": 2})
            assert await host.ainvoke_capability("add", {"a": 1, "b": 2}) == '{"success":true,"result":3}'

    @pytest.mark.asyncio
    async def test_respond_to_permission_pushes_event(self, config, registry) -> None:
        handle = FakeAgentHandle()
        async with _host(handle, config, registry) as host:
            host.respond_to_permission("perm-1", True, PermissionChoice.always_allow)
            host.respond_to_permission("perm-2", False)

        assert handle.pushed == [
            (
                "perm-1",
                {
                    "permission_id": "perm-1",
                    "source_name": "capability_host",
                    "approved": True,
                    "reason": None,
                    "choice": "always_allow",
                },
            ),
            (
                "perm-2",
                {
                    "permission_id": "perm-2",
                    "source_name": "capability_host",
                    "approved": False,
                    "reason": "Permission denied by user",
                    "choice": "ask",
                },
            ),
        ]


def test_permission_response_requires_id() -> None:
    with pytest.raises(ValidationError):
        PermissionResponse(permission_id="", approved=True)


def test_agent_config_rejects_unknown_fields() -> None:
    with pytest.raises(ValidationError):
        AgentConfig(name="a", temperature=0.2)
