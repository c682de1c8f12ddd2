# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
Statistic Kinds: the three accumulated sufficient statistics.
"""

from __future__ import annotations

from enum import Enum
from typing import Union


class StatisticKind(str, Enum):
    """Accumulated quantity kept per bucket. Values are storage codes."""

    COUNT = "counts"
    SUM = "sums"
    SUM_OF_SQUARES = "squares"

    @property
    def code(self) -> str:
        return self.value

    @classmethod
    def from_code(cls, code: Union[str, "StatisticKind"]) -> "StatisticKind":
        if isinstance(code, StatisticKind):
            return code
        key = str(code).strip()
        for member in cls:
            if key.lower() == member.value or key.upper() == member.name:
                return member
        raise ValueError(f"Unknown statistic kind '{code}'")
