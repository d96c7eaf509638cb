"""Core infrastructure module - config, DI container, protocols, exceptions."""

from pagecite.core.config import (
    AppConfig,
    CorpusConfig,
    FilterConfig,
    RateLimitConfig,
    StreamConfig,
    UpstreamConfig,
)
from pagecite.core.exceptions import (
    AppError,
    ConfigurationError,
    ContentBlockedError,
    RateLimitedError,
    UpstreamError,
)

__all__ = [
    "AppConfig",
    "UpstreamConfig",
    "RateLimitConfig",
    "FilterConfig",
    "StreamConfig",
    "CorpusConfig",
    "AppError",
    "RateLimitedError",
    "ContentBlockedError",
    "UpstreamError",
    "ConfigurationError",
]
