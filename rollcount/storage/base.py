# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
CounterStore: Abstract interface of the counter-capable store.

The engine needs exactly five capabilities from its store:
  - atomic increments, batched so a whole batch applies as one unit
  - a consistency level attached to every operation
  - awaitable execution (fire-and-forget is layered on top by the engine)
  - ordered range scan over buckets for a fixed (name, kind, granularity)
  - delete-by-name removing every cell of a counter at once
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rollcount.core.errors import UnavailableError
from rollcount.protocols.granularity import Granularity
from rollcount.protocols.kinds import StatisticKind
from rollcount.protocols.policy import ConsistencyLevel


def ensure_available(consistency: ConsistencyLevel, total_copies: int) -> int:
    """Return the copies a level needs, or raise if the deployment cannot provide them."""
    required = consistency.required_copies(total_copies)
    if required > total_copies:
        raise UnavailableError(consistency.value, required, total_copies)
    return required


@dataclass(frozen=True)
class CellKey:
    """Address of one accumulator cell. bucket is epoch milliseconds."""

    name: str
    kind: StatisticKind
    granularity: Granularity
    bucket: int


@dataclass(frozen=True)
class CellDelta:
    """An increment to apply to one cell."""

    key: CellKey
    delta: int


class CounterStore(ABC):
    """Abstract base class for counter stores."""

    @abstractmethod
    async def apply_batch(
        self,
        deltas: Sequence[CellDelta],
        consistency: ConsistencyLevel,
    ) -> None:
        """Apply every delta or none of them."""
        ...

    @abstractmethod
    async def scan(
        self,
        name: str,
        kind: StatisticKind,
        granularity: Granularity,
        start: Optional[int],
        finish: Optional[int],
        consistency: ConsistencyLevel,
    ) -> List[Tuple[int, int]]:
        """
        Return (bucket_ms, value) pairs with start <= bucket_ms <= finish,
        ascending. None bounds are open.
        """
        ...

    @abstractmethod
    async def delete(self, name: str, consistency: ConsistencyLevel) -> None:
        """Remove every cell of a counter in one operation."""
        ...

    async def close(self) -> None:
        """Release connections. No-op by default."""

    async def info(self) -> Dict[str, Any]:
        """Status summary for health checks."""
        return {"store": type(self).__name__}
