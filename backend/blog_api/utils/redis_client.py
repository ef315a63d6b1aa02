"""Helpers to create Redis clients with SSL support for hosted providers."""

from __future__ import annotations

import ssl
from typing import Any

from redis import Redis
from redis.asyncio import Redis as AsyncRedis


def _normalize_url(url: str) -> str:
    # Upstash only accepts TLS connections
    if ".upstash.io" in url and url.startswith("redis://"):
        return url.replace("redis://", "rediss://", 1)
    return url


def _relax_ssl(client: Redis | AsyncRedis, url: str) -> None:
    if url.startswith("rediss://") and hasattr(client.connection_pool, "connection_kwargs"):
        client.connection_pool.connection_kwargs["ssl_cert_reqs"] = ssl.CERT_NONE


def create_redis_client(url: str, **kwargs: Any) -> Redis:
    """Create a blocking Redis client (worker-side publishing, health checks).

    Args:
        url: Redis connection URL (redis:// or rediss://)
        **kwargs: Additional arguments (decode_responses, socket_connect_timeout, etc.)
    """
    url = _normalize_url(url)
    client = Redis.from_url(url, **kwargs)
    _relax_ssl(client, url)
    return client


def create_async_redis_client(url: str, **kwargs: Any) -> AsyncRedis:
    """Create an asyncio Redis client for pub/sub consumers inside the API."""
    url = _normalize_url(url)
    client = AsyncRedis.from_url(url, **kwargs)
    _relax_ssl(client, url)
    return client
