"""
Configuration Settings.

This module defines the capability host configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.
"""

from enum import Enum
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DuplicatePolicy(str, Enum):
    """How the registry treats a second registration under an existing name."""

    reject = "reject"
    replace = "replace"


class LogFormat(str, Enum):
    simple = "simple"
    detailed = "detailed"
    json = "json"


class Settings(BaseSettings):
    """
    Capability host settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    # =====================================================================
    # Pydantic Configuration
    # =====================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Logging Configuration
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="CAPABILITY_HOST_LOG_LEVEL",
    )
    log_format: LogFormat = Field(
        default=LogFormat.detailed,
        description="Log line format (simple, detailed, json)",
        alias="CAPABILITY_HOST_LOG_FORMAT",
    )
    log_file_dir: str = Field(
        default="logs",
        description="Directory for the log file when file logging is enabled",
        alias="CAPABILITY_HOST_LOG_FILE_DIR",
    )
    enable_file_logging: bool = Field(
        default=False,
        description="Write a DEBUG-level log file next to console output",
        alias="CAPABILITY_HOST_ENABLE_FILE_LOGGING",
    )

    # =====================================================================
    # Registry / Dispatch Configuration
    # =====================================================================
    duplicate_policy: DuplicatePolicy = Field(
        default=DuplicatePolicy.reject,
        description="Behavior when a capability name is registered twice (reject or replace)",
        alias="CAPABILITY_HOST_DUPLICATE_POLICY",
    )
    offload_sync_executors: bool = Field(
        default=False,
        description="Run synchronous executors on a worker thread instead of the calling task",
        alias="CAPABILITY_HOST_OFFLOAD_SYNC_EXECUTORS",
    )

    # =====================================================================
    # Built-in Plugin Configuration
    # =====================================================================
    workspace_root: Optional[str] = Field(
        default=None,
        description="Default directory for filesystem capabilities (defaults to the process cwd)",
        alias="CAPABILITY_HOST_WORKSPACE_ROOT",
    )


settings = Settings()
