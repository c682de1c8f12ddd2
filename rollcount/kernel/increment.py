# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
Increment Engine: one event, one atomic batch.

For every configured granularity the event adds +1 to the COUNT cell of
its bucket; an event carrying a value also adds +value to SUM and
+value**2 to SUM_OF_SQUARES at the same coordinates. All of those deltas
are submitted to the store as a single batch, so no granularity can
reflect an event a sibling granularity has not recorded.

The write mode picks the execution path:
  - SYNC:  await the store acknowledgment, failures propagate
  - ASYNC: schedule the batch and return the pending task immediately
"""

from __future__ import annotations

import asyncio
import functools
import logging
import numbers
import time
from datetime import datetime, timezone
from typing import List, Optional, Set

from rollcount.core.metrics import engine_metrics
from rollcount.protocols.granularity import BucketSchema, to_epoch_ms
from rollcount.protocols.kinds import StatisticKind
from rollcount.protocols.policy import ConsistencyLevel, Policy, WriteMode
from rollcount.storage.base import CellDelta, CellKey, CounterStore

logger = logging.getLogger("rollcount.increment")

# Largest magnitude whose square still fits a signed 64-bit cell
MAX_EVENT_VALUE = 3037000499


def check_value(value) -> Optional[int]:
    """Validate an event value: None or an integer whose square fits int64."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise ValueError(f"Event values must be integers, got {type(value).__name__}")
    value = int(value)
    if abs(value) > MAX_EVENT_VALUE:
        raise ValueError(f"Event value {value} is out of range (|value| <= {MAX_EVENT_VALUE})")
    return value


def build_deltas(
    name: str,
    schema: BucketSchema,
    timestamp: datetime,
    value: Optional[int] = None,
) -> List[CellDelta]:
    """Every per-granularity, per-kind delta produced by one event."""
    value = check_value(value)
    deltas: List[CellDelta] = []
    for granularity, bucket in schema.buckets(timestamp).items():
        bucket_ms = to_epoch_ms(bucket)
        deltas.append(CellDelta(CellKey(name, StatisticKind.COUNT, granularity, bucket_ms), 1))
        if value is not None:
            deltas.append(CellDelta(CellKey(name, StatisticKind.SUM, granularity, bucket_ms), value))
            deltas.append(
                CellDelta(CellKey(name, StatisticKind.SUM_OF_SQUARES, granularity, bucket_ms), value * value)
            )
    return deltas


class IncrementEngine:
    """
    Submits event batches to a store.

    The only state is the set of in-flight ASYNC writes, kept so scheduled
    tasks stay referenced until they finish and can be drained on shutdown.
    """

    def __init__(self) -> None:
        self._inflight: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._inflight)

    async def apply(
        self,
        store: CounterStore,
        name: str,
        policy: Policy,
        schema: BucketSchema,
        timestamp: Optional[datetime] = None,
        value: Optional[int] = None,
    ) -> Optional[asyncio.Task]:
        """
        Record one event.

        Returns None once the batch is acknowledged (SYNC), or the pending
        task (ASYNC). An ASYNC failure never raises here; await the task or
        call task.exception() to observe it.
        """
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)
        deltas = build_deltas(name, schema, timestamp, value)

        match policy.write_mode:
            case WriteMode.SYNC:
                await self._submit(store, name, deltas, policy.consistency)
                return None
            case WriteMode.ASYNC:
                task = asyncio.ensure_future(self._submit(store, name, deltas, policy.consistency))
                self._inflight.add(task)
                task.add_done_callback(functools.partial(self._on_async_done, name))
                return task
        raise AssertionError(f"Unhandled write mode: {policy.write_mode!r}")

    async def _submit(
        self,
        store: CounterStore,
        name: str,
        deltas: List[CellDelta],
        consistency: ConsistencyLevel,
    ) -> None:
        start = time.time()
        try:
            await store.apply_batch(deltas, consistency)
        except Exception:
            engine_metrics.inc("batch_failures")
            raise
        engine_metrics.observe("batch_latency_ms", (time.time() - start) * 1000)
        engine_metrics.inc("batches_applied")
        engine_metrics.inc("cells_written", len(deltas))
        logger.debug(
            "Applied %d cells", len(deltas),
            extra={"counter": name, "consistency": consistency},
        )

    def _on_async_done(self, name: str, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            engine_metrics.inc("async_write_failures")
            logger.error(
                "Async increment of '%s' failed: %s", name, exc,
                extra={"counter": name},
            )

    async def drain(self) -> None:
        """Wait for every in-flight ASYNC write to settle."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
