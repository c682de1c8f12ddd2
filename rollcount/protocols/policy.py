# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
Policy Layer: consistency level and write synchronicity.

A Policy is pure configuration: no identity, immutable, copied by value
into every Counter. The consistency level travels with each store
operation; the write mode selects the execution path of an increment.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from rollcount.core.config import RollcountSettings


class ConsistencyLevel(str, Enum):
    """Replica-acknowledgment policy applied to a single store operation."""

    ANY = "ANY"
    ONE = "ONE"
    TWO = "TWO"
    THREE = "THREE"
    QUORUM = "QUORUM"
    ALL = "ALL"
    LOCAL_QUORUM = "LOCAL_QUORUM"
    EACH_QUORUM = "EACH_QUORUM"

    @classmethod
    def parse(cls, value: Union[str, "ConsistencyLevel", None]) -> "ConsistencyLevel":
        if value is None:
            raise ValueError("A consistency level is required")
        if isinstance(value, ConsistencyLevel):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown consistency level '{value}'") from None

    def required_copies(self, total_copies: int) -> int:
        """
        How many copies must acknowledge an operation at this level.

        total_copies counts the primary plus its replicas. Single-datacenter
        deployments treat LOCAL_QUORUM and EACH_QUORUM as QUORUM.
        """
        match self:
            case ConsistencyLevel.ANY:
                return 0
            case ConsistencyLevel.ONE:
                return 1
            case ConsistencyLevel.TWO:
                return 2
            case ConsistencyLevel.THREE:
                return 3
            case ConsistencyLevel.QUORUM | ConsistencyLevel.LOCAL_QUORUM | ConsistencyLevel.EACH_QUORUM:
                return total_copies // 2 + 1
            case ConsistencyLevel.ALL:
                return total_copies
        raise AssertionError(f"Unhandled consistency level: {self!r}")


class WriteMode(str, Enum):
    """Whether an increment waits for the store to acknowledge it."""

    SYNC = "SYNC"
    ASYNC = "ASYNC"

    @classmethod
    def parse(cls, value: Union[str, "WriteMode", None]) -> "WriteMode":
        if value is None:
            raise ValueError("A write mode is required")
        if isinstance(value, WriteMode):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown write mode '{value}'") from None


@dataclass(frozen=True)
class Policy:
    """Per-counter store policy."""

    consistency: ConsistencyLevel = ConsistencyLevel.QUORUM
    write_mode: WriteMode = WriteMode.SYNC

    def __post_init__(self) -> None:
        object.__setattr__(self, "consistency", ConsistencyLevel.parse(self.consistency))
        object.__setattr__(self, "write_mode", WriteMode.parse(self.write_mode))

    @classmethod
    def from_settings(cls, settings: "RollcountSettings") -> "Policy":
        return cls(
            consistency=ConsistencyLevel.parse(settings.CONSISTENCY_LEVEL),
            write_mode=WriteMode.parse(settings.WRITE_MODE),
        )

    def __repr__(self) -> str:
        return f"Policy(consistency={self.consistency.value}, write_mode={self.write_mode.value})"
