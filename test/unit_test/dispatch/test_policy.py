from __future__ import annotations

import pytest

from capability_host.capabilities.registry import CapabilityRegistry
from capability_host.capabilities.schema_builder import describe_callable
from capability_host.dispatch.executor import DispatchExecutor
from capability_host.dispatch.policy import GrantedPermissionsPolicy, PermissionPolicy
from capability_host.errors import PermissionDeniedError
from capability_host.schemas.domain import CapabilityDescriptor, ErrorKind


def _descriptor(**kwargs) -> CapabilityDescriptor:
    return CapabilityDescriptor(name="cap", **kwargs)


class TestGrantedPermissionsPolicy:
    def test_is_a_permission_policy(self) -> None:
        assert isinstance(GrantedPermissionsPolicy(), PermissionPolicy)

    def test_unflagged_capability_is_allowed(self) -> None:
        GrantedPermissionsPolicy().check(_descriptor(), {})

    def test_granted_permissions_allow(self) -> None:
        policy = GrantedPermissionsPolicy(["fs.write", "shell"])
        policy.check(_descriptor(required_permissions={"fs.write"}), {})

    def test_missing_permissions_are_named(self) -> None:
        policy = GrantedPermissionsPolicy(["a"])
        with pytest.raises(PermissionDeniedError, match="missing permissions: b, c"):
            policy.check(_descriptor(required_permissions={"a", "c", "b"}), {})

    def test_flag_without_names_follows_allow_unlisted(self) -> None:
        descriptor = _descriptor(requires_permission=True)
        GrantedPermissionsPolicy().check(descriptor, {})
        with pytest.raises(PermissionDeniedError):
            GrantedPermissionsPolicy(allow_unlisted=False).check(descriptor, {})

    def test_permissions_model(self) -> None:
        policy = GrantedPermissionsPolicy(["x"], allow_unlisted=False)
        assert policy.permissions.granted == frozenset({"x"})
        assert policy.permissions.allow_unlisted is False


def _write(path: str) -> str:
    return path


@pytest.fixture
def guarded_registry() -> CapabilityRegistry:
    reg = CapabilityRegistry()
    reg.register(describe_callable(_write, name="write", required_permissions=["fs.write"]), _write)
    return reg


@pytest.mark.asyncio
async def test_permission_flags_are_not_enforced_without_policy(guarded_registry: CapabilityRegistry) -> None:
    result = await DispatchExecutor(guarded_registry).invoke("write", {"path": "a"})
    assert result.ok is True


@pytest.mark.asyncio
async def test_policy_denial_is_reported_and_executor_not_called(guarded_registry: CapabilityRegistry) -> None:
    calls = []

    def executor(path: str) -> str:
        calls.append(path)
        return path

    guarded_registry.register(guarded_registry.get("write").descriptor, executor, replace=True)
    dispatcher = DispatchExecutor(guarded_registry, permission_policy=GrantedPermissionsPolicy())

    result = await dispatcher.invoke("write", {"path": "a"})

    assert result.ok is False
    assert result.error_kind is ErrorKind.permission_denied
    assert "fs.write" in result.message
    assert calls == []


@pytest.mark.asyncio
async def test_policy_runs_after_coercion(guarded_registry: CapabilityRegistry) -> None:
    seen = []

    class RecordingPolicy:
        def check(self, descriptor, arguments) -> None:
            seen.append(dict(arguments))

    dispatcher = DispatchExecutor(guarded_registry, permission_policy=RecordingPolicy())
    bad = await dispatcher.invoke("write", {})
    good = await dispatcher.invoke("write", {"path": "a"})

    assert bad.error_kind is ErrorKind.malformed_arguments
    assert good.ok is True
    assert seen == [{"path": "a"}]
