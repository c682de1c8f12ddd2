# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
Shared test fixtures for all Rollcount tests.
"""

from datetime import timezone

import pytest
import fakeredis
import fakeredis.aioredis

from rollcount.core.metrics import engine_metrics
from rollcount.protocols.granularity import BucketSchema
from rollcount.protocols.policy import ConsistencyLevel, Policy, WriteMode
from rollcount.service import CounterService
from rollcount.storage.memory_store import InMemoryCounterStore
from rollcount.storage.redis_store import RedisCounterStore


@pytest.fixture(autouse=True)
def reset_metrics():
    """Engine metrics are process-wide; start every test from zero."""
    engine_metrics.reset()
    yield
    engine_metrics.reset()


@pytest.fixture
def mock_redis():
    """Provide an isolated FakeRedis async instance."""
    server = fakeredis.FakeServer()
    return fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)


@pytest.fixture
def redis_store(mock_redis) -> RedisCounterStore:
    return RedisCounterStore(mock_redis, prefix="test")


@pytest.fixture
def memory_store() -> InMemoryCounterStore:
    return InMemoryCounterStore()


@pytest.fixture
def schema() -> BucketSchema:
    return BucketSchema(tz=timezone.utc)


@pytest.fixture
def sync_policy() -> Policy:
    return Policy(ConsistencyLevel.ONE, WriteMode.SYNC)


@pytest.fixture
def async_policy() -> Policy:
    return Policy(ConsistencyLevel.ONE, WriteMode.ASYNC)


@pytest.fixture
def service(memory_store, schema) -> CounterService:
    return CounterService(memory_store, schema, Policy(ConsistencyLevel.QUORUM, WriteMode.SYNC))
