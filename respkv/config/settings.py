"""
RESP-KV Configuration Settings

This module contains all configuration constants for the RESP-KV server.
Values can be overridden with RESPKV_* environment variables.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Server configuration settings."""

    # Network settings
    HOST: str = os.environ.get("RESPKV_HOST", "127.0.0.1")
    PORT: int = int(os.environ.get("RESPKV_PORT", "6379"))

    # Connection settings
    MAX_CONNECTIONS: int = int(os.environ.get("RESPKV_MAX_CONNECTIONS", "1000"))
    READ_BUFFER_SIZE: int = int(os.environ.get("RESPKV_BUFFER_SIZE", "1024"))

    # Protocol limits (same defaults as redis-server)
    MAX_BULK_LENGTH: int = 512 * 1024 * 1024
    MAX_MULTIBULK_LENGTH: int = 1024 * 1024
    MAX_LENGTH_LINE: int = 64 * 1024

    # Storage settings
    PERSISTENCE_ENABLED: bool = os.environ.get("RESPKV_PERSISTENCE", "false").lower() == "true"

    # Logging settings
    DEBUG: bool = os.environ.get("RESPKV_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("RESPKV_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
