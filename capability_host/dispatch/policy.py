"""Permission policy hook for dispatch.

Permission flags on a ``CapabilityDescriptor`` are metadata. The dispatcher
checks nothing unless a ``PermissionPolicy`` is configured; when one is, it
runs after argument coercion and before the executor. A policy blocks a call
by raising ``PermissionDeniedError``.

``GrantedPermissionsPolicy`` is an opt-in allow-list policy: a capability that
requires permissions may only run when every required permission was granted.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Protocol, runtime_checkable

from pydantic import Field

from ..errors import PermissionDeniedError
from ..schemas.base import BaseSchema
from ..schemas.domain import CapabilityDescriptor


@runtime_checkable
class PermissionPolicy(Protocol):
    """Protocol for permission checks performed before an executor runs."""

    def check(self, descriptor: CapabilityDescriptor, arguments: Mapping[str, Any]) -> None: ...


class GrantedPermissions(BaseSchema):
    """Set of permission names granted to the caller.

    Usage guidelines:
    - `granted`: permission names the caller holds, e.g. ``"filesystem.write"``.
    - `allow_unlisted`: when True, a capability flagged ``requires_permission``
      without any named permission is allowed.
    """

    granted: frozenset[str] = Field(default_factory=frozenset, description="Permission names held by the caller")
    allow_unlisted: bool = Field(
        default=True,
        description="Allow capabilities that require permission but name no specific permission",
    )


class GrantedPermissionsPolicy:
    """Deny capabilities whose required permissions are not all granted."""

    def __init__(self, granted: Iterable[str] = (), *, allow_unlisted: bool = True) -> None:
        self._permissions = GrantedPermissions(granted=frozenset(granted), allow_unlisted=allow_unlisted)

    @property
    def permissions(self) -> GrantedPermissions:
        return self._permissions

    def check(self, descriptor: CapabilityDescriptor, arguments: Mapping[str, Any]) -> None:
        """Raise `PermissionDeniedError` if the caller lacks a required permission.

        Args:
            descriptor: The capability about to run.
            arguments: The coerced arguments (unused by this policy).

        Raises:
            PermissionDeniedError: If a required permission is missing.
        """
        if not descriptor.requires_permission:
            return
        if not descriptor.required_permissions:
            if not self._permissions.allow_unlisted:
                raise PermissionDeniedError(descriptor.name, "capability requires permission")
            return
        missing = sorted(descriptor.required_permissions - self._permissions.granted)
        if missing:
            raise PermissionDeniedError(descriptor.name, f"missing permissions: {', '.join(missing)}")
