"""FastAPI dependencies."""

from functools import lru_cache

from fastapi import Request

from pagecite.core.config import AppConfig, get_config


@lru_cache
def get_cached_config() -> AppConfig:
    """Get cached application config."""
    return get_config()


def client_key(request: Request) -> str:
    """Rate-limit identity for a request.

    First hop of ``X-Forwarded-For``, then ``X-Real-IP``, then the socket
    peer address.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "unknown"
