"""Built-in capability plugins.

Nothing here registers itself on import; ``register_builtin_capabilities``
is called from the startup routine.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from ..registry import CapabilityRegistry
from . import arithmetic
from .filesystem import CommandRunInput, CommandRunOutput, FilesystemPlugin


def register_builtin_capabilities(
    registry: CapabilityRegistry,
    *,
    workspace_root: Optional[Union[str, Path]] = None,
) -> CapabilityRegistry:
    """Register the ``math`` and ``filesystem`` plugins on ``registry``."""
    arithmetic.register(registry)
    FilesystemPlugin(workspace_root).register(registry)
    return registry


__all__ = [
    "CommandRunInput",
    "CommandRunOutput",
    "FilesystemPlugin",
    "register_builtin_capabilities",
]
