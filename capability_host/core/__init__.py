"""
Core utilities and configuration for the capability host.

This package provides the shared settings model and logging configuration.
"""

from capability_host.core.config import DuplicatePolicy, Settings, settings
from capability_host.core.logging_config import get_logger, setup_logging

__all__ = ["DuplicatePolicy", "Settings", "get_logger", "settings", "setup_logging"]
