"""
Configuration exports for history_replicator.

Usage:
    from history_replicator.config import load_config
    settings = load_config()
"""

from .state import (
    DEFAULT_CURSOR_EPOCH,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    ApiConfig,
    BackendsConfig,
    ConfigLoader,
    ConfigState,
    IngestionConfig,
    LoggingConfig,
    MetricsConfig,
    ReplicationConfig,
    RetrySettings,
    UpstreamConfig,
    load_config,
)

__all__ = [
    "ApiConfig",
    "BackendsConfig",
    "ConfigLoader",
    "ConfigState",
    "DEFAULT_CURSOR_EPOCH",
    "DEFAULT_PAGE_SIZE",
    "IngestionConfig",
    "LoggingConfig",
    "MAX_PAGE_SIZE",
    "MetricsConfig",
    "ReplicationConfig",
    "RetrySettings",
    "UpstreamConfig",
    "load_config",
]
