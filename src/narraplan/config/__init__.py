"""Application configuration helpers."""

from __future__ import annotations

from .env import env_float, optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .extraction import ExtractionConfig, extraction_configured, get_extraction_config
from .http_resilience import (
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    RetryPolicy,
    bearer_headers,
)
from .logging import configure_logging
from .planning import env_int, get_planning_config
from .storage import (
    DatabaseConfig,
    StorageConfig,
    get_database_config,
    get_http_cache_path,
    get_storage_config,
)
from .web_search import WebSearchConfig, get_web_search_config, web_search_configured

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "ExtractionConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "WebSearchConfig",
    "bearer_headers",
    "configure_logging",
    "env_float",
    "env_int",
    "extraction_configured",
    "get_database_config",
    "get_extraction_config",
    "get_http_cache_path",
    "get_planning_config",
    "get_storage_config",
    "get_web_search_config",
    "optional_env_var",
    "require_env_vars",
    "web_search_configured",
]
