"""Capability registry.

The registry maps a capability name to its ``RegisteredCapability``
(descriptor plus executor). The dispatcher uses it to resolve the name of
every ``invoke`` call.

Reads vastly outnumber writes: every dispatch performs a lookup while
registration happens mostly during startup (and occasionally later, when
plugins are registered lazily). Writers therefore build a new mapping under a
lock and publish it with a single reference swap; readers work on whichever
snapshot they observe and never lock.
"""

from __future__ import annotations

import json
import threading
from typing import Any, Dict, List, Optional

from ..core.config import DuplicatePolicy
from ..core.logging_config import get_logger
from ..errors import DuplicateCapabilityError, UnknownCapabilityError
from ..schemas.domain import CapabilityDescriptor, PluginSummary, RegistryStats
from .base import Executor, RegisteredCapability
from .schema_builder import build_function_schema

logger = get_logger(__name__)


class CapabilityRegistry:
    """
    Process-scoped mapping of capability names to descriptors and executors.

    This registry is the single long-lived shared structure of the host. It is
    created by an explicit initialization routine and passed by reference to
    the dispatcher.

    Notes:
        - Names are unique. Under ``DuplicatePolicy.reject`` (the default) a
          second registration raises ``DuplicateCapabilityError``; under
          ``DuplicatePolicy.replace`` or with ``replace=True`` it overwrites the
          entry in place, keeping its registration position.
        - ``lookup`` returns ``None`` for a missing capability, ``get`` raises
          ``UnknownCapabilityError``.
    """

    def __init__(self, duplicate_policy: DuplicatePolicy = DuplicatePolicy.reject) -> None:
        """Initialize an empty capability registry."""
        self._duplicate_policy = duplicate_policy
        self._entries: Dict[str, RegisteredCapability] = {}
        self._write_lock = threading.Lock()

    @property
    def duplicate_policy(self) -> DuplicatePolicy:
        return self._duplicate_policy

    def register(self, descriptor: CapabilityDescriptor, executor: Executor, *, replace: bool = False) -> None:
        """
        Register a capability implementation.

        Args:
            descriptor: The immutable descriptor; its ``name`` is the registry key.
            executor: The callable bound to the descriptor.
            replace: Overwrite an existing entry regardless of the duplicate policy.

        Raises:
            DuplicateCapabilityError: If the name is taken and replacement is not allowed.
            TypeError: If ``executor`` is not callable.
        """
        if not callable(executor):
            raise TypeError(f"Executor for capability '{descriptor.name}' is not callable")

        entry = RegisteredCapability(descriptor=descriptor, executor=executor)
        with self._write_lock:
            exists = descriptor.name in self._entries
            if exists and not (replace or self._duplicate_policy is DuplicatePolicy.replace):
                raise DuplicateCapabilityError(descriptor.name)
            entries = dict(self._entries)
            entries[descriptor.name] = entry
            self._entries = entries

        if exists:
            logger.info(f"Replaced capability: {descriptor.name}")
        else:
            logger.debug(f"Registered capability: {descriptor.name} (plugin={descriptor.plugin_name})")

    def lookup(self, name: str) -> Optional[RegisteredCapability]:
        """
        Retrieve a registered capability by name without raising.

        Args:
            name: The capability name.

        Returns:
            The registry entry, or ``None`` if no capability has that name.
        """
        return self._entries.get(name)

    def get(self, name: str) -> RegisteredCapability:
        """
        Retrieve a registered capability by name.

        Raises:
            UnknownCapabilityError: If no capability is registered with the given name.
        """
        entry = self._entries.get(name)
        if entry is None:
            raise UnknownCapabilityError(name)
        return entry

    def has(self, name: str) -> bool:
        return name in self._entries

    def names(self) -> List[str]:
        """Capability names in registration order."""
        return list(self._entries)

    def list_descriptors(self) -> List[CapabilityDescriptor]:
        """All descriptors in registration order."""
        return [entry.descriptor for entry in self._entries.values()]

    def schemas(self) -> List[Dict[str, Any]]:
        """Published function schemas of every capability, in registration order."""
        return [build_function_schema(entry.descriptor) for entry in self._entries.values()]

    def schemas_json(self) -> str:
        return json.dumps(self.schemas(), separators=(",", ":"), ensure_ascii=False, default=str)

    def stats(self) -> RegistryStats:
        """Summarize registered capabilities per plugin.

        Capabilities registered without a ``plugin_name`` count towards
        ``total_capabilities`` only.
        """
        grouped: Dict[str, List[str]] = {}
        snapshot = self._entries
        for entry in snapshot.values():
            if entry.descriptor.plugin_name:
                grouped.setdefault(entry.descriptor.plugin_name, []).append(entry.name)
        return RegistryStats(
            total_capabilities=len(snapshot),
            total_plugins=len(grouped),
            plugins=[
                PluginSummary(name=plugin, function_count=len(functions), functions=functions)
                for plugin, functions in grouped.items()
            ],
        )

    def clear(self) -> None:
        """Drop every registration; used at process teardown."""
        with self._write_lock:
            self._entries = {}
        logger.debug("Capability registry cleared")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries
