# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
Redis Counter Store: the production store collaborator.

  - apply_batch: Lua HINCRBY + ZADD for every delta; any failing command
                 restores the cells it already touched, so a batch lands whole
                 or not at all
  - scan:        Lua ZRANGEBYLEX + HGET so bounds and values come from one snapshot
  - delete:      one DEL of the counter's two keys

Consistency levels map onto Redis replication: the primary plus REPLICAS
replicas are the copies. A level that needs more copies than exist fails
before the store is touched; a level that needs replicas issues WAIT after
the write and fails if too few acknowledge in time.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from rollcount.core.errors import ConsistencyNotMetError, StoreError
from rollcount.kernel.namespace import (
    cell_member,
    get_cells_key,
    get_index_key,
    lex_range,
    parse_member,
)
from rollcount.protocols.granularity import Granularity
from rollcount.protocols.kinds import StatisticKind
from rollcount.protocols.policy import ConsistencyLevel
from rollcount.storage.base import CellDelta, CounterStore, ensure_available

logger = logging.getLogger("rollcount.redis_store")

# KEYS = cells/index key pairs, one pair per counter in the batch.
# ARGV = flat (pair number, member, delta) triples.
# Hash increments run first and remember each cell's prior value; index
# members are added afterwards. On the first error every touched cell and
# new index member is restored before the error is returned.
_LUA_BATCH_SCRIPT = """
local restores = {}
local added = {}

local function failed(reply)
    return type(reply) == 'table' and reply.err ~= nil
end

local function rollback()
    for i = #added, 1, -1 do
        redis.call('ZREM', added[i][1], added[i][2])
    end
    for i = #restores, 1, -1 do
        local r = restores[i]
        if r[3] then
            redis.call('HSET', r[1], r[2], r[3])
        else
            redis.call('HDEL', r[1], r[2])
        end
    end
end

for i = 1, #ARGV, 3 do
    local cells = KEYS[2 * tonumber(ARGV[i]) - 1]
    local member = ARGV[i + 1]
    local prior = redis.pcall('HGET', cells, member)
    if failed(prior) then
        rollback()
        return redis.error_reply(prior.err)
    end
    local reply = redis.pcall('HINCRBY', cells, member, ARGV[i + 2])
    if failed(reply) then
        rollback()
        return redis.error_reply(reply.err)
    end
    table.insert(restores, {cells, member, prior})
end

for i = 1, #ARGV, 3 do
    local index = KEYS[2 * tonumber(ARGV[i])]
    local member = ARGV[i + 1]
    local reply = redis.pcall('ZADD', index, 0, member)
    if failed(reply) then
        rollback()
        return redis.error_reply(reply.err)
    end
    if reply == 1 then
        table.insert(added, {index, member})
    end
end

return #restores
"""

# KEYS[1] = index zset, KEYS[2] = cells hash, ARGV = inclusive lex bounds.
# Returns a flat [member, value, member, value, ...] list.
_LUA_SCAN_SCRIPT = """
local members = redis.call('ZRANGEBYLEX', KEYS[1], ARGV[1], ARGV[2])
local result = {}
for _, member in ipairs(members) do
    local value = redis.call('HGET', KEYS[2], member)
    if value then
        table.insert(result, member)
        table.insert(result, value)
    end
end
return result
"""


def _text(raw: Any) -> str:
    return raw.decode() if isinstance(raw, bytes) else raw


class RedisCounterStore(CounterStore):
    """Counter store backed by a (possibly replicated) Redis primary."""

    def __init__(
        self,
        redis: aioredis.Redis,
        prefix: str = "rollcount",
        replicas: int = 0,
        wait_timeout_ms: int = 1000,
        owns_client: bool = False,
    ) -> None:
        if redis is None:
            raise ValueError("A Redis client is required")
        if not prefix:
            raise ValueError("A key prefix is required")
        if replicas < 0:
            raise ValueError("replicas must be >= 0")
        self._redis = redis
        self._prefix = prefix
        self._copies = replicas + 1
        self._wait_timeout_ms = wait_timeout_ms
        self._owns_client = owns_client
        self._batch_script = self._redis.register_script(_LUA_BATCH_SCRIPT)
        self._scan_script = self._redis.register_script(_LUA_SCAN_SCRIPT)

    @property
    def redis(self) -> aioredis.Redis:
        return self._redis

    def _keys(self, name: str) -> Tuple[str, str]:
        return get_cells_key(self._prefix, name), get_index_key(self._prefix, name)

    async def _await_replicas(self, consistency: ConsistencyLevel, required: int) -> None:
        """Block until required-1 replicas hold the write, or fail."""
        replicas_needed = required - 1
        if replicas_needed <= 0:
            return
        try:
            acked = await self._redis.wait(replicas_needed, self._wait_timeout_ms)
        except RedisError as e:
            raise StoreError(f"Replica wait failed: {e}", {"error": type(e).__name__}) from e
        if acked < replicas_needed:
            raise ConsistencyNotMetError(consistency.value, required, acked + 1)

    # ── CounterStore ────────────────────────────────────────────

    async def apply_batch(
        self,
        deltas: Sequence[CellDelta],
        consistency: ConsistencyLevel,
    ) -> None:
        required = ensure_available(consistency, self._copies)
        if not deltas:
            return

        keys: List[str] = []
        pairs: Dict[str, int] = {}
        args: List[Any] = []
        for d in deltas:
            k = d.key
            if k.name not in pairs:
                keys.extend(self._keys(k.name))
                pairs[k.name] = len(pairs) + 1
            args.extend((pairs[k.name], cell_member(k.kind, k.granularity, k.bucket), d.delta))

        try:
            await self._batch_script(keys=keys, args=args)
        except RedisError as e:
            raise StoreError(
                f"Counter batch failed: {e}",
                {"error": type(e).__name__, "cells": len(deltas)},
            ) from e

        await self._await_replicas(consistency, required)
        logger.debug("Applied batch of %d deltas", len(deltas), extra={"consistency": consistency})

    async def scan(
        self,
        name: str,
        kind: StatisticKind,
        granularity: Granularity,
        start: Optional[int],
        finish: Optional[int],
        consistency: ConsistencyLevel,
    ) -> List[Tuple[int, int]]:
        ensure_available(consistency, self._copies)
        cells_key, index_key = self._keys(name)
        low, high = lex_range(kind, granularity, start, finish)
        try:
            raw = await self._scan_script(keys=[index_key, cells_key], args=[low, high])
        except RedisError as e:
            raise StoreError(f"Range scan failed: {e}", {"error": type(e).__name__}) from e

        rows: List[Tuple[int, int]] = []
        for i in range(0, len(raw), 2):
            _, _, bucket = parse_member(_text(raw[i]))
            rows.append((bucket, int(_text(raw[i + 1]))))
        return rows

    async def delete(self, name: str, consistency: ConsistencyLevel) -> None:
        required = ensure_available(consistency, self._copies)
        try:
            await self._redis.delete(*self._keys(name))
        except RedisError as e:
            raise StoreError(f"Counter delete failed: {e}", {"error": type(e).__name__}) from e
        await self._await_replicas(consistency, required)

    async def close(self) -> None:
        if self._owns_client:
            await self._redis.aclose()

    async def info(self) -> Dict[str, Any]:
        """Connectivity probe for health checks."""
        try:
            await self._redis.ping()
        except RedisError as e:
            return {"store": "redis", "redis": "unreachable", "error": str(e)}
        return {"store": "redis", "redis": "connected", "copies": self._copies}
