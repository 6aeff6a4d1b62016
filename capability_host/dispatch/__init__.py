"""Argument coercion and capability dispatch.

- ``ArgumentCoercer``: untyped payload -> typed keyword arguments.
- ``DispatchExecutor``: name + payload -> ``DispatchResult`` (never raises).
- ``PermissionPolicy``: optional pre-execution check.
"""

from .coercer import ArgumentCoercer, CoercionError, coerce_value
from .envelope import render_error, render_success
from .executor import DispatchExecutor, parse_payload
from .policy import GrantedPermissions, GrantedPermissionsPolicy, PermissionPolicy

__all__ = [
    "ArgumentCoercer",
    "CoercionError",
    "DispatchExecutor",
    "GrantedPermissions",
    "GrantedPermissionsPolicy",
    "PermissionPolicy",
    "coerce_value",
    "parse_payload",
    "render_error",
    "render_success",
]
