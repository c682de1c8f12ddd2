# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.
"""Unit tests for RedisCounterStore (FakeRedis)."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from rollcount.core.errors import ConsistencyNotMetError, StoreError, UnavailableError
from rollcount.counter import Counter
from rollcount.kernel.increment import MAX_EVENT_VALUE, build_deltas
from rollcount.kernel.namespace import cell_member
from rollcount.protocols.granularity import Granularity, to_epoch_ms
from rollcount.protocols.kinds import StatisticKind
from rollcount.protocols.policy import ConsistencyLevel
from rollcount.storage.redis_store import RedisCounterStore

T = datetime(2024, 3, 17, 14, 37, 52, tzinfo=timezone.utc)
DAY_MS = to_epoch_ms(datetime(2024, 3, 17, tzinfo=timezone.utc))


class TestRedisCounterStore:
    def test_requires_client(self):
        with pytest.raises(ValueError):
            RedisCounterStore(None)

    @pytest.mark.asyncio
    async def test_batch_writes_cells_and_index(self, redis_store, mock_redis, schema):
        await redis_store.apply_batch(build_deltas("c", schema, T, 3), ConsistencyLevel.ONE)

        cells = await mock_redis.hgetall("test:{c}:cells")
        assert len(cells) == 18
        assert await mock_redis.zcard("test:{c}:index") == 18
        rows = await redis_store.scan("c", StatisticKind.SUM_OF_SQUARES, Granularity.DAY, None, None, ConsistencyLevel.ONE)
        assert rows == [(DAY_MS, 9)]

    @pytest.mark.asyncio
    async def test_scan_orders_and_filters_slice(self, redis_store, schema):
        days = [datetime(2024, 3, d, 8, tzinfo=timezone.utc) for d in (20, 3, 11, 3)]
        for day in days:
            await redis_store.apply_batch(build_deltas("c", schema, day, 1), ConsistencyLevel.ONE)

        rows = await redis_store.scan("c", StatisticKind.COUNT, Granularity.DAY, None, None, ConsistencyLevel.ONE)
        assert [v for _, v in rows] == [2, 1, 1]
        assert [b for b, _ in rows] == sorted(b for b, _ in rows)

        start = to_epoch_ms(datetime(2024, 3, 11, tzinfo=timezone.utc))
        finish = to_epoch_ms(datetime(2024, 3, 20, tzinfo=timezone.utc))
        bounded = await redis_store.scan("c", StatisticKind.COUNT, Granularity.DAY, start, finish, ConsistencyLevel.ONE)
        assert bounded == [(start, 1), (finish, 1)]

    @pytest.mark.asyncio
    async def test_scan_missing_counter_is_empty(self, redis_store):
        rows = await redis_store.scan("nope", StatisticKind.COUNT, Granularity.ALL, None, None, ConsistencyLevel.ONE)
        assert rows == []

    @pytest.mark.asyncio
    async def test_pre_epoch_buckets_sort_first(self, redis_store, schema):
        await redis_store.apply_batch(build_deltas("c", schema, T), ConsistencyLevel.ONE)
        await redis_store.apply_batch(
            build_deltas("c", schema, datetime(1969, 12, 31, 23, 59, 30, tzinfo=timezone.utc)),
            ConsistencyLevel.ONE,
        )
        rows = await redis_store.scan("c", StatisticKind.COUNT, Granularity.MINUTE, None, None, ConsistencyLevel.ONE)
        assert rows[0][0] == -60000
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_delete_is_one_tombstone(self, redis_store, mock_redis, schema):
        await redis_store.apply_batch(build_deltas("c", schema, T, 1), ConsistencyLevel.ONE)
        await redis_store.apply_batch(build_deltas("keep", schema, T, 1), ConsistencyLevel.ONE)

        await redis_store.delete("c", ConsistencyLevel.ONE)

        assert await mock_redis.exists("test:{c}:cells", "test:{c}:index") == 0
        assert await mock_redis.exists("test:{keep}:cells") == 1

    @pytest.mark.asyncio
    async def test_unavailable_fails_before_writing(self, redis_store, mock_redis, schema):
        with pytest.raises(UnavailableError) as exc_info:
            await redis_store.apply_batch(build_deltas("c", schema, T), ConsistencyLevel.TWO)
        assert exc_info.value.details == {"consistency": "TWO", "required": 2, "available": 1}
        assert await mock_redis.exists("test:{c}:cells") == 0

    @pytest.mark.asyncio
    async def test_replicated_write_waits_for_replicas(self, mock_redis, schema):
        store = RedisCounterStore(mock_redis, prefix="test", replicas=2, wait_timeout_ms=250)
        mock_redis.wait = AsyncMock(return_value=2)

        await store.apply_batch(build_deltas("c", schema, T), ConsistencyLevel.ALL)

        mock_redis.wait.assert_awaited_once_with(2, 250)

    @pytest.mark.asyncio
    async def test_one_does_not_wait(self, mock_redis, schema):
        store = RedisCounterStore(mock_redis, prefix="test", replicas=2)
        mock_redis.wait = AsyncMock(return_value=0)

        await store.apply_batch(build_deltas("c", schema, T), ConsistencyLevel.ONE)

        mock_redis.wait.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_consistency_not_met(self, mock_redis, schema):
        store = RedisCounterStore(mock_redis, prefix="test", replicas=2)
        mock_redis.wait = AsyncMock(return_value=0)

        with pytest.raises(ConsistencyNotMetError) as exc_info:
            await store.apply_batch(build_deltas("c", schema, T), ConsistencyLevel.QUORUM)
        assert exc_info.value.code == "CONSISTENCY_NOT_MET"
        assert exc_info.value.details["acknowledged"] == 1

    @pytest.mark.asyncio
    async def test_failed_batch_call_applies_nothing(self, redis_store, mock_redis, schema):
        mock_redis.evalsha = AsyncMock(side_effect=RedisConnectionError("connection reset"))

        with pytest.raises(StoreError, match="connection reset"):
            await redis_store.apply_batch(build_deltas("c", schema, T, 4), ConsistencyLevel.ONE)

        del mock_redis.evalsha
        assert await mock_redis.exists("test:{c}:cells", "test:{c}:index") == 0

    @pytest.mark.asyncio
    async def test_overflowing_cell_rolls_back_whole_batch(self, redis_store, schema, sync_policy):
        counter = Counter(redis_store, "c", sync_policy, schema)
        await counter.increment(T, MAX_EVENT_VALUE)

        # The second event's squares no longer fit in a 64-bit cell
        with pytest.raises(StoreError):
            await counter.increment(T, MAX_EVENT_VALUE)

        for granularity in Granularity:
            assert list((await counter.get_counts(granularity)).values()) == [1]
            assert list((await counter.get_sums(granularity)).values()) == [MAX_EVENT_VALUE]
            assert list((await counter.get_squares(granularity)).values()) == [MAX_EVENT_VALUE ** 2]

    @pytest.mark.asyncio
    async def test_rollback_removes_cells_the_batch_created(self, redis_store, mock_redis, schema):
        minute_ms = to_epoch_ms(T.replace(second=0))
        full = cell_member(StatisticKind.SUM_OF_SQUARES, Granularity.MINUTE, minute_ms)
        await mock_redis.hset("test:{c}:cells", full, 2 ** 63 - 1)

        with pytest.raises(StoreError):
            await redis_store.apply_batch(build_deltas("c", schema, T, 1), ConsistencyLevel.ONE)

        assert await mock_redis.hgetall("test:{c}:cells") == {full: str(2 ** 63 - 1)}
        assert await mock_redis.zcard("test:{c}:index") == 0

    @pytest.mark.asyncio
    async def test_close_only_closes_owned_client(self, mock_redis):
        mock_redis.aclose = AsyncMock()
        await RedisCounterStore(mock_redis).close()
        mock_redis.aclose.assert_not_awaited()
        await RedisCounterStore(mock_redis, owns_client=True).close()
        mock_redis.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_info(self, redis_store):
        info = await redis_store.info()
        assert info["redis"] == "connected"


class TestCounterOnRedis:
    @pytest.mark.asyncio
    async def test_known_values_end_to_end(self, redis_store, schema, sync_policy):
        counter = Counter(redis_store, "latency", sync_policy, schema)
        for value in (2, 4, 6):
            await counter.increment(T, value)

        day = datetime(2024, 3, 17, tzinfo=timezone.utc)
        assert await counter.get_counts(Granularity.DAY) == {day: 3}
        assert await counter.get_means(Granularity.DAY) == {day: 4.0}
        assert await counter.get_deviations(Granularity.DAY) == {day: 2.0}
        assert await counter.get_variances(Granularity.DAY) == {day: 4.0}

    @pytest.mark.asyncio
    async def test_delete_end_to_end(self, redis_store, schema, sync_policy):
        counter = Counter(redis_store, "c", sync_policy, schema)
        await counter.increment(T, 1)
        await counter.delete()
        for kind in StatisticKind:
            assert await counter.raw_range(kind, Granularity.ALL) == {}
