# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
Counter: a named event counter bound to a policy and a store.

A Counter holds identity only: its name, its Policy, and references to
the shared store, bucket schema and increment engine. It caches nothing,
so any number of Counter objects for the same name can coexist.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from datetime import datetime
from typing import Dict, Optional, Union

from rollcount.core.metrics import engine_metrics
from rollcount.kernel import query
from rollcount.kernel.increment import IncrementEngine
from rollcount.protocols.granularity import BucketSchema, Granularity
from rollcount.protocols.kinds import StatisticKind
from rollcount.protocols.policy import ConsistencyLevel, Policy, WriteMode
from rollcount.storage.base import CounterStore

logger = logging.getLogger("rollcount.counter")

GranularityRef = Union[Granularity, str]


class Counter:
    """Named counter with minute/hour/day/month/year/all-time rollups."""

    def __init__(
        self,
        store: CounterStore,
        name: str,
        policy: Policy,
        schema: Optional[BucketSchema] = None,
        engine: Optional[IncrementEngine] = None,
    ) -> None:
        if store is None:
            raise ValueError("A store is required")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("A non-empty counter name is required")
        if policy is None:
            raise ValueError("A policy is required")
        self._store = store
        self._name = name
        self._policy = policy
        self._schema = schema or BucketSchema()
        self._engine = engine or IncrementEngine()

    @property
    def name(self) -> str:
        return self._name

    @property
    def policy(self) -> Policy:
        return self._policy

    @property
    def schema(self) -> BucketSchema:
        return self._schema

    def __repr__(self) -> str:
        return f"Counter(name={self._name!r}, policy={self._policy!r})"

    # ── Policy overrides ────────────────────────────────────────

    def set_consistency_level(self, level: Union[ConsistencyLevel, str]) -> None:
        self._policy = dataclasses.replace(self._policy, consistency=ConsistencyLevel.parse(level))

    def set_write_mode(self, mode: Union[WriteMode, str]) -> None:
        self._policy = dataclasses.replace(self._policy, write_mode=WriteMode.parse(mode))

    # ── Writes ──────────────────────────────────────────────────

    async def increment(
        self,
        time: Optional[datetime] = None,
        value: Optional[int] = None,
    ) -> Optional[asyncio.Task]:
        """
        Count one event at `time` (default: now), optionally carrying a value
        for means, deviations and variances.

        SYNC policies return None after the store acknowledges; ASYNC
        policies return the pending task right away.
        """
        return await self._engine.apply(
            self._store, self._name, self._policy, self._schema, time, value,
        )

    async def delete(self) -> None:
        """Remove every cell of this counter with a single tombstone."""
        await self._store.delete(self._name, self._policy.consistency)
        engine_metrics.inc("counters_deleted")
        logger.info("Deleted counter '%s'", self._name, extra={"counter": self._name})

    # ── Reads ───────────────────────────────────────────────────

    async def raw_range(
        self,
        kind: Union[StatisticKind, str],
        granularity: GranularityRef,
        start: Optional[datetime] = None,
        finish: Optional[datetime] = None,
    ) -> Dict[datetime, int]:
        """Accumulated values by bucket, ascending; both bounds inclusive."""
        return await query.raw_range(
            self._store, self._name, self._policy.consistency, self._schema,
            kind, granularity, start, finish,
        )

    async def get_counts(self, granularity: GranularityRef, start=None, finish=None) -> Dict[datetime, int]:
        return await self.raw_range(StatisticKind.COUNT, granularity, start, finish)

    async def get_sums(self, granularity: GranularityRef, start=None, finish=None) -> Dict[datetime, int]:
        return await self.raw_range(StatisticKind.SUM, granularity, start, finish)

    async def get_squares(self, granularity: GranularityRef, start=None, finish=None) -> Dict[datetime, int]:
        return await self.raw_range(StatisticKind.SUM_OF_SQUARES, granularity, start, finish)

    async def get_means(self, granularity: GranularityRef, start=None, finish=None) -> Dict[datetime, float]:
        return await query.means(
            self._store, self._name, self._policy.consistency, self._schema,
            granularity, start, finish,
        )

    async def get_deviations(self, granularity: GranularityRef, start=None, finish=None) -> Dict[datetime, float]:
        return await query.deviations(
            self._store, self._name, self._policy.consistency, self._schema,
            granularity, start, finish,
        )

    async def get_variances(self, granularity: GranularityRef, start=None, finish=None) -> Dict[datetime, float]:
        return await query.variances(
            self._store, self._name, self._policy.consistency, self._schema,
            granularity, start, finish,
        )
