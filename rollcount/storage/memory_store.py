# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
In-memory counter store for tests and single-process use.

Batches are validated and staged completely before anything is applied,
so an injected failure or an overflowing cell never leaves a partial
batch behind.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from rollcount.core.errors import StoreError
from rollcount.protocols.granularity import Granularity
from rollcount.protocols.kinds import StatisticKind
from rollcount.protocols.policy import ConsistencyLevel
from rollcount.storage.base import CellDelta, CounterStore, ensure_available

logger = logging.getLogger("rollcount.memory_store")

# Accumulator cells are signed 64-bit integers
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

_Partition = Dict[Tuple[StatisticKind, Granularity, int], int]


class InMemoryCounterStore(CounterStore):
    """Dict-backed store: name -> {(kind, granularity, bucket_ms): value}."""

    def __init__(self, copies: int = 1) -> None:
        self._copies = copies
        self._partitions: Dict[str, _Partition] = defaultdict(dict)
        self._fail_batches: List[Exception] = []
        self.operations: List[Tuple[str, ConsistencyLevel]] = []
        self.closed = False

    # ── Fault injection ─────────────────────────────────────────

    def fail_next_batch(self, exc: Optional[Exception] = None) -> None:
        """Make the next apply_batch fail as a whole with exc (StoreError by default)."""
        self._fail_batches.append(exc or StoreError("Injected batch failure"))

    # ── CounterStore ────────────────────────────────────────────

    async def apply_batch(
        self,
        deltas: Sequence[CellDelta],
        consistency: ConsistencyLevel,
    ) -> None:
        ensure_available(consistency, self._copies)
        self.operations.append(("batch", consistency))
        if self._fail_batches:
            raise self._fail_batches.pop(0)

        staged: Dict[Tuple[str, Tuple[StatisticKind, Granularity, int]], int] = defaultdict(int)
        for d in deltas:
            k = d.key
            staged[(k.name, (k.kind, k.granularity, k.bucket))] += d.delta
        updated = {}
        for (name, cell), delta in staged.items():
            value = self._partitions.get(name, {}).get(cell, 0) + delta
            if not INT64_MIN <= value <= INT64_MAX:
                raise StoreError(
                    "Increment would overflow a 64-bit cell",
                    {"counter": name, "cell": [cell[0].code, cell[1].code, cell[2]]},
                )
            updated[(name, cell)] = value
        for (name, cell), value in updated.items():
            self._partitions[name][cell] = value
        logger.debug("Applied batch of %d deltas", len(deltas))

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
        self.operations.append(("scan", consistency))
        partition = self._partitions.get(name, {})
        rows = [
            (bucket, value)
            for (k, g, bucket), value in partition.items()
            if k == kind
            and g == granularity
            and (start is None or bucket >= start)
            and (finish is None or bucket <= finish)
        ]
        rows.sort()
        return rows

    async def delete(self, name: str, consistency: ConsistencyLevel) -> None:
        ensure_available(consistency, self._copies)
        self.operations.append(("delete", consistency))
        self._partitions.pop(name, None)

    async def close(self) -> None:
        self.closed = True

    def cell_count(self, name: str) -> int:
        return len(self._partitions.get(name, {}))
