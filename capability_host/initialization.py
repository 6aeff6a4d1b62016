"""Startup routine for the capability host.

``setup_capability_host`` wires the pieces a host application needs:

- logging, from the loaded settings
- a ``CapabilityRegistry`` with the configured duplicate policy
- the built-in ``math`` and ``filesystem`` plugins (optional)
- a ``DispatchExecutor`` and a ``StreamingBridge`` sharing that registry
"""

from dataclasses import dataclass, field
from typing import Optional

from .agent.handle import AgentConfig, AgentHandle
from .agent.host import AgentHost
from .capabilities.builtin import register_builtin_capabilities
from .capabilities.registry import CapabilityRegistry
from .core.config import Settings
from .core.config import settings as default_settings
from .core.logging_config import get_logger, setup_logging
from .dispatch.executor import DispatchExecutor
from .dispatch.policy import PermissionPolicy
from .streaming.bridge import StreamingBridge

logger = get_logger(__name__)


@dataclass
class CapabilityHost:
    """Registry, dispatcher and streaming bridge built by ``setup_capability_host``."""

    registry: CapabilityRegistry
    dispatcher: DispatchExecutor
    bridge: StreamingBridge = field(default_factory=StreamingBridge)

    def agent_host(self, handle: AgentHandle, config: AgentConfig, **kwargs) -> AgentHost:
        """Build an ``AgentHost`` that shares this host's registry, dispatcher and bridge."""
        return AgentHost(
            handle,
            config,
            registry=self.registry,
            dispatcher=self.dispatcher,
            bridge=self.bridge,
            **kwargs,
        )


def setup_capability_host(
    settings: Optional[Settings] = None,
    *,
    include_builtin: bool = True,
    permission_policy: Optional[PermissionPolicy] = None,
    configure_logging: bool = True,
) -> CapabilityHost:
    """Set up the capability host.

    Args:
        settings: Optional Settings (loads from env if not provided)
        include_builtin: Whether to register the built-in plugins (default: True)
        permission_policy: Optional policy consulted before each executor runs
        configure_logging: Whether to (re)configure logging from the settings

    Returns:
        Initialized CapabilityHost bundle
    """
    if settings is None:
        settings = default_settings

    if configure_logging:
        setup_logging(
            log_level=settings.log_level,
            log_format=settings.log_format.value,
            enable_file=settings.enable_file_logging,
            log_file_dir=settings.log_file_dir,
        )

    logger.info(
        f"Setting up capability host: "
        f"duplicate_policy={settings.duplicate_policy.value}, "
        f"offload_sync={settings.offload_sync_executors}, "
        f"include_builtin={include_builtin}"
    )

    registry = CapabilityRegistry(duplicate_policy=settings.duplicate_policy)
    if include_builtin:
        register_builtin_capabilities(registry, workspace_root=settings.workspace_root)

    dispatcher = DispatchExecutor(
        registry,
        permission_policy=permission_policy,
        offload_sync=settings.offload_sync_executors,
    )

    host = CapabilityHost(registry=registry, dispatcher=dispatcher, bridge=StreamingBridge())
    logger.info(f"Capability host initialized. Registered capabilities: {registry.names()}")
    return host
