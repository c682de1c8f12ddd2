# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
Counter Service: the counter registry.

Binds counter names to the shared store, bucket schema, default policy
and increment engine. Created once at startup with an injected store and
handed to whoever needs counters; there is no global instance.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from rollcount.core import config
from rollcount.core.config import RollcountSettings
from rollcount.counter import Counter
from rollcount.kernel.increment import IncrementEngine
from rollcount.kernel.redis_client import create_redis
from rollcount.protocols.granularity import BucketSchema
from rollcount.protocols.policy import Policy
from rollcount.storage.base import CounterStore
from rollcount.storage.redis_store import RedisCounterStore

logger = logging.getLogger("rollcount.service")


class CounterService:
    """Hands out Counters that share one store session."""

    def __init__(
        self,
        store: CounterStore,
        schema: Optional[BucketSchema] = None,
        policy: Optional[Policy] = None,
    ) -> None:
        if store is None:
            raise ValueError("A store is required")
        self._store = store
        defaults = config.settings
        self._schema = schema or BucketSchema(defaults.granularity_set, defaults.zone)
        self._policy = policy or Policy.from_settings(defaults)
        self._engine = IncrementEngine()

    @classmethod
    def from_settings(cls, settings: RollcountSettings) -> "CounterService":
        """Connect to the Redis store described by settings (fails fast on bad config)."""
        redis = create_redis(settings.REDIS_URL)
        store = RedisCounterStore(
            redis,
            prefix=settings.KEY_PREFIX,
            replicas=settings.REPLICAS,
            wait_timeout_ms=settings.WAIT_TIMEOUT_MS,
            owns_client=True,
        )
        schema = BucketSchema(settings.granularity_set, settings.zone)
        service = cls(store, schema, Policy.from_settings(settings))
        logger.info(
            "Counter service ready (granularities=%s, tz=%s, policy=%r)",
            ",".join(g.code for g in schema.granularities), settings.TIMEZONE, service.policy,
        )
        return service

    @property
    def store(self) -> CounterStore:
        return self._store

    @property
    def schema(self) -> BucketSchema:
        return self._schema

    @property
    def policy(self) -> Policy:
        return self._policy

    @property
    def pending_writes(self) -> int:
        return self._engine.pending

    def get_counter(self, name: str, policy: Optional[Policy] = None) -> Counter:
        """The counter identified by name, bound to the default policy unless one is given."""
        return Counter(self._store, name, policy or self._policy, self._schema, self._engine)

    async def increment(
        self,
        name: str,
        time: Optional[datetime] = None,
        value: Optional[int] = None,
    ) -> Optional[asyncio.Task]:
        """Count one event for the named counter."""
        return await self.get_counter(name).increment(time, value)

    async def delete(self, name: str) -> None:
        await self.get_counter(name).delete()

    async def close(self) -> None:
        """Drain in-flight async writes, then release the store."""
        await self._engine.drain()
        await self._store.close()
        logger.info("Counter service closed")
