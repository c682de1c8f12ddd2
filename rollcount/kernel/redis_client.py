# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
Redis Connection Factory: Async connection pool for the counter store.

The client is created once by whoever bootstraps the process and injected
into the CounterService; nothing here holds it globally.
"""

from __future__ import annotations

import redis.asyncio as aioredis
from redis.backoff import ExponentialBackoff
from redis.retry import Retry
from redis.exceptions import (
    ConnectionError,
    TimeoutError,
    BusyLoadingError,
)

_RETRY = Retry(ExponentialBackoff(cap=2, base=0.1), retries=3)
_RETRY_ERRORS = [ConnectionError, TimeoutError, BusyLoadingError, OSError]


def create_redis(url: str, max_connections: int = 20) -> aioredis.Redis:
    """
    Build an async Redis client with a connection pool.

    Retry-on-error lets stale pool connections reconnect transparently;
    that is the only retry in the write path.
    """
    if not url or not url.strip():
        raise ValueError("A Redis URL must be specified")
    return aioredis.from_url(
        url,
        decode_responses=True,
        max_connections=max_connections,
        health_check_interval=15,
        retry_on_timeout=True,
        retry_on_error=_RETRY_ERRORS,
        retry=_RETRY,
        socket_connect_timeout=5,
        socket_timeout=10,
        socket_keepalive=True,
    )
