"""Configuration management module.

This module provides:
- Environment-based configuration with validation
- Service-specific settings classes
- Cached settings access via get_settings()
"""

from .settings import (
    Environment,
    KubernetesSettings,
    LogFormat,
    LogLevel,
    MirrorSyncSettings,
    Settings,
    get_settings,
    get_sync_settings,
)

__all__ = [
    # Main settings
    "Settings",
    "get_settings",
    # Enums
    "Environment",
    "LogLevel",
    "LogFormat",
    # Component settings
    "KubernetesSettings",
    # Service-specific settings
    "MirrorSyncSettings",
    "get_sync_settings",
]
