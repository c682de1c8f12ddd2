# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
Namespace Helper: Redis layout of a counter's wide partition.

Each counter name owns two keys sharing the hash tag {name}, so they land
in the same Redis Cluster slot and can be touched by one transaction:

    {prefix}:{name}:cells   HASH   member -> int64 value
    {prefix}:{name}:index   ZSET   members at score 0, ordered lexicographically

A member encodes the clustering columns (kind, granularity, bucket):

    counts:daily:0001700006400000

The bucket is epoch milliseconds shifted by BUCKET_OFFSET and zero padded,
so lexicographic order equals chronological order.
"""

from __future__ import annotations

from typing import Optional, Tuple

from rollcount.protocols.granularity import Granularity
from rollcount.protocols.kinds import StatisticKind

BUCKET_OFFSET = 10 ** 15
BUCKET_WIDTH = 16

_MIN_BUCKET = "0" * BUCKET_WIDTH
_MAX_BUCKET = "9" * BUCKET_WIDTH


def get_cells_key(prefix: str, name: str) -> str:
    """
    Examples:
        get_cells_key("rollcount", "logins") -> "rollcount:{logins}:cells"
    """
    return f"{prefix}:{{{name}}}:cells"


def get_index_key(prefix: str, name: str) -> str:
    """
    Examples:
        get_index_key("rollcount", "logins") -> "rollcount:{logins}:index"
    """
    return f"{prefix}:{{{name}}}:index"


def encode_bucket(bucket_ms: int) -> str:
    shifted = bucket_ms + BUCKET_OFFSET
    if shifted < 0 or shifted >= 10 ** BUCKET_WIDTH:
        raise ValueError(f"Bucket {bucket_ms} is outside the storable range")
    return f"{shifted:0{BUCKET_WIDTH}d}"


def decode_bucket(encoded: str) -> int:
    return int(encoded) - BUCKET_OFFSET


def member_prefix(kind: StatisticKind, granularity: Granularity) -> str:
    return f"{kind.code}:{granularity.code}:"


def cell_member(kind: StatisticKind, granularity: Granularity, bucket_ms: int) -> str:
    return member_prefix(kind, granularity) + encode_bucket(bucket_ms)


def parse_member(member: str) -> Tuple[str, str, int]:
    """Split a member back into (kind code, granularity code, bucket ms)."""
    kind, granularity, encoded = member.split(":")
    return kind, granularity, decode_bucket(encoded)


def lex_range(
    kind: StatisticKind,
    granularity: Granularity,
    start: Optional[int],
    finish: Optional[int],
) -> Tuple[str, str]:
    """Inclusive ZRANGEBYLEX bounds for one (kind, granularity) slice."""
    prefix = member_prefix(kind, granularity)
    low = encode_bucket(start) if start is not None else _MIN_BUCKET
    high = encode_bucket(finish) if finish is not None else _MAX_BUCKET
    return f"[{prefix}{low}", f"[{prefix}{high}"
