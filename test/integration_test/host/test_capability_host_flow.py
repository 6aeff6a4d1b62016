"""End-to-end flows through ``setup_capability_host``.

A scripted agent handle stands in for the external agent: each ``send``
performs the tool calls listed in the message and streams one event per
call, exactly as a real agent would call back into the host from its own
thread.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Mapping

import pytest

from capability_host import (
    AgentConfig,
    AgentHandle,
    AgentHost,
    DuplicateCapabilityError,
    ErrorKind,
    describe_callable,
    setup_capability_host,
)
from capability_host.agent.handle import EventCallback
from capability_host.core.config import Settings
from capability_host.dispatch.policy import GrantedPermissionsPolicy


class ScriptedAgentHandle(AgentHandle):
    """Treats each message as a JSON list of ``{"name", "arguments"}`` tool calls."""

    def __init__(self) -> None:
        self.host: AgentHost | None = None
        self.capabilities: List[Dict[str, Any]] = []
        self.destroyed = 0

    def create(self, config: AgentConfig, capabilities: List[Dict[str, Any]]) -> None:
        self.capabilities = capabilities

    def send(self, message: str, on_event: EventCallback) -> None:
        for call in json.loads(message):
            result = self.host.invoke_capability(call["name"], json.dumps(call["arguments"]))
            on_event(json.dumps({"type": "tool_result", "name": call["name"], "result": json.loads(result)}))
        on_event(None)

    def push_event(self, event_id: str, event: Mapping[str, Any]) -> None:
        pass

    def destroy(self) -> None:
        self.destroyed += 1


@pytest.fixture
def host_settings(tmp_path: Path) -> Settings:
    return Settings(_env_file=None, workspace_root=str(tmp_path))


async def _run(agent: AgentHost, calls: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [json.loads(event) async for event in agent.run(json.dumps(calls))]


@pytest.mark.asyncio
async def test_agent_uses_builtin_capabilities(host_settings: Settings, tmp_path: Path) -> None:
    host = setup_capability_host(host_settings, configure_logging=False)
    handle = ScriptedAgentHandle()

    async with host.agent_host(handle, AgentConfig(name="assistant")) as agent:
        handle.host = agent
        events = await _run(
            agent,
            [
                {"name": "add", "arguments": {"a": 2, "b": 3}},
                {"name": "write_file", "arguments": {"file_path": "out/result.txt", "content": "5"}},
                {"name": "read_file", "arguments": {"file_path": "out/result.txt"}},
                {"name": "missing", "arguments": {}},
            ],
        )

    assert [e["name"] for e in events] == ["add", "write_file", "read_file", "missing"]
    assert events[0]["result"] == {"success": True, "result": 5}
    assert events[1]["result"]["result"]["created"] is True
    assert events[2]["result"]["result"]["content"] == "     1\t5"
    assert events[3]["result"] == {"success": False, "error": "Unknown capability: 'missing'"}
    assert (tmp_path / "out" / "result.txt").read_text() == "5"
    assert {c["function"]["name"] for c in handle.capabilities} >= {"add", "read_file", "run_command"}
    assert handle.destroyed == 1


@pytest.mark.asyncio
async def test_permission_policy_blocks_write(host_settings: Settings, tmp_path: Path) -> None:
    host = setup_capability_host(
        host_settings,
        permission_policy=GrantedPermissionsPolicy(["shell.execute"]),
        configure_logging=False,
    )

    denied = await host.dispatcher.invoke("write_file", {"file_path": "x.txt", "content": "x"})
    allowed = await host.dispatcher.invoke("list_directory", {})

    assert denied.error_kind is ErrorKind.permission_denied
    assert not (tmp_path / "x.txt").exists()
    assert allowed.ok is True


@pytest.mark.asyncio
async def test_concurrent_agents_share_host_without_cross_talk(host_settings: Settings) -> None:
    host = setup_capability_host(host_settings, include_builtin=False, configure_logging=False)

    def tag(agent_id: int, step: int) -> Dict[str, int]:
        return {"agent": agent_id, "step": step}

    host.registry.register(describe_callable(tag), tag)

    async def one_agent(agent_id: int) -> List[Dict[str, Any]]:
        handle = ScriptedAgentHandle()
        async with host.agent_host(handle, AgentConfig(name=f"agent-{agent_id}")) as agent:
            handle.host = agent
            calls = [{"name": "tag", "arguments": {"agent_id": agent_id, "step": s}} for s in range(5)]
            return await _run(agent, calls)

    results = await asyncio.gather(*(one_agent(i) for i in range(6)))

    for agent_id, events in enumerate(results):
        assert [e["result"]["result"] for e in events] == [{"agent": agent_id, "step": s} for s in range(5)]
    assert host.bridge.active_sessions() == 0


def test_setup_respects_duplicate_policy(tmp_path: Path) -> None:
    strict = setup_capability_host(Settings(_env_file=None, workspace_root=str(tmp_path)), configure_logging=False)
    with pytest.raises(DuplicateCapabilityError):
        strict.registry.register(strict.registry.get("add").descriptor, lambda a, b: a - b)

    lenient = setup_capability_host(
        Settings(_env_file=None, workspace_root=str(tmp_path), duplicate_policy="replace"),
        configure_logging=False,
    )
    lenient.registry.register(lenient.registry.get("add").descriptor, lambda a, b: a - b)
    assert lenient.dispatcher.invoke_blocking("add", {"a": 5, "b": 3}).envelope()["result"] == 2


def test_setup_without_builtins(tmp_path: Path) -> None:
    host = setup_capability_host(
        Settings(_env_file=None, workspace_root=str(tmp_path)), include_builtin=False, configure_logging=False
    )
    assert len(host.registry) == 0
    assert host.registry.stats().total_plugins == 0
