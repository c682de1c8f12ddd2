# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
Query & Derivation Engine.

raw_range() scans the accumulated cells of one (kind, granularity) slice.
Both bounds go through the same normalization as the increment path, so
an unnormalized boundary still includes its bucket.

Derived statistics join the raw slices by bucket timestamp (key equality,
never position) and only report buckets present in every slice they need:

    mean      = sum / count
    deviation = sqrt((squares - sum**2 / count) / (count - 1))   if count > 1
              = 0.0                                             if count <= 1
    variance  = deviation**2

Derivations are total: a zero count or a corrupt negative radicand gives
nan instead of raising.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Dict, Optional

from rollcount.core.metrics import engine_metrics
from rollcount.protocols.granularity import BucketSchema, Granularity, from_epoch_ms, to_epoch_ms
from rollcount.protocols.kinds import StatisticKind
from rollcount.protocols.policy import ConsistencyLevel
from rollcount.storage.base import CounterStore

logger = logging.getLogger("rollcount.query")


async def raw_range(
    store: CounterStore,
    name: str,
    consistency: ConsistencyLevel,
    schema: BucketSchema,
    kind: StatisticKind,
    granularity: Granularity,
    start: Optional[datetime] = None,
    finish: Optional[datetime] = None,
) -> Dict[datetime, int]:
    """Ordered bucket -> accumulated value for start <= bucket <= finish (None = open)."""
    kind = StatisticKind.from_code(kind)
    granularity = schema.require(granularity)
    start_ms = to_epoch_ms(schema.normalize(granularity, start)) if start is not None else None
    finish_ms = to_epoch_ms(schema.normalize(granularity, finish)) if finish is not None else None
    if start_ms is not None and finish_ms is not None and start_ms > finish_ms:
        return {}

    rows = await store.scan(name, kind, granularity, start_ms, finish_ms, consistency)
    engine_metrics.inc("range_scans")
    logger.debug(
        "Scanned %d buckets", len(rows),
        extra={"counter": name, "kind": kind, "granularity": granularity},
    )
    return {from_epoch_ms(bucket, schema.tz): value for bucket, value in rows}


# ── Pure derivations ───────────────────────────────────────────


def mean(count: int, total: int) -> float:
    if count == 0:
        return math.nan
    return total / count


def deviation(count: int, total: int, squares: int) -> float:
    """Bessel-corrected sample standard deviation from raw moments."""
    if count <= 1:
        return 0.0
    radicand = (squares - total * total / count) / (count - 1)
    if radicand < 0:
        return math.nan
    return math.sqrt(radicand)


def derive_means(
    counts: Dict[datetime, int],
    sums: Dict[datetime, int],
) -> Dict[datetime, float]:
    return {t: mean(c, sums[t]) for t, c in counts.items() if t in sums}


def derive_deviations(
    counts: Dict[datetime, int],
    sums: Dict[datetime, int],
    squares: Dict[datetime, int],
) -> Dict[datetime, float]:
    return {
        t: deviation(c, sums[t], squares[t])
        for t, c in counts.items()
        if t in sums and t in squares
    }


def derive_variances(
    counts: Dict[datetime, int],
    sums: Dict[datetime, int],
    squares: Dict[datetime, int],
) -> Dict[datetime, float]:
    return {t: d * d for t, d in derive_deviations(counts, sums, squares).items()}


# ── Composed queries ───────────────────────────────────────────


async def _slices(store, name, consistency, schema, granularity, start, finish, *kinds):
    return [
        await raw_range(store, name, consistency, schema, kind, granularity, start, finish)
        for kind in kinds
    ]


async def means(
    store: CounterStore,
    name: str,
    consistency: ConsistencyLevel,
    schema: BucketSchema,
    granularity: Granularity,
    start: Optional[datetime] = None,
    finish: Optional[datetime] = None,
) -> Dict[datetime, float]:
    counts, sums = await _slices(
        store, name, consistency, schema, granularity, start, finish,
        StatisticKind.COUNT, StatisticKind.SUM,
    )
    return derive_means(counts, sums)


async def deviations(
    store: CounterStore,
    name: str,
    consistency: ConsistencyLevel,
    schema: BucketSchema,
    granularity: Granularity,
    start: Optional[datetime] = None,
    finish: Optional[datetime] = None,
) -> Dict[datetime, float]:
    counts, sums, squares = await _slices(
        store, name, consistency, schema, granularity, start, finish,
        StatisticKind.COUNT, StatisticKind.SUM, StatisticKind.SUM_OF_SQUARES,
    )
    return derive_deviations(counts, sums, squares)


async def variances(
    store: CounterStore,
    name: str,
    consistency: ConsistencyLevel,
    schema: BucketSchema,
    granularity: Granularity,
    start: Optional[datetime] = None,
    finish: Optional[datetime] = None,
) -> Dict[datetime, float]:
    counts, sums, squares = await _slices(
        store, name, consistency, schema, granularity, start, finish,
        StatisticKind.COUNT, StatisticKind.SUM, StatisticKind.SUM_OF_SQUARES,
    )
    return derive_variances(counts, sums, squares)
