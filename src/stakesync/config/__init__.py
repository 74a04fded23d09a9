"""Application configuration helpers."""

from __future__ import annotations

from .cluster import ClusterConfig, get_cluster_config
from .env import env_or_default
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging

__all__ = [
    "ClusterConfig",
    "ConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "configure_logging",
    "env_or_default",
    "get_cluster_config",
]
