# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
Rollcount Configuration: Environment-driven settings.

All configuration is loaded from environment variables (or .env file).
Uses ROLLCOUNT_ prefix, e.g. ROLLCOUNT_REDIS_URL.
"""

from __future__ import annotations

from typing import Tuple
from zoneinfo import ZoneInfo

from pydantic import Field
from pydantic_settings import BaseSettings

from rollcount.protocols.granularity import Granularity, parse_granularities


class RollcountSettings(BaseSettings):
    """Counter engine configuration loaded from environment."""

    # --- Redis ---
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL of the counter store",
    )
    KEY_PREFIX: str = Field(
        default="rollcount",
        description="Namespace prepended to every counter key",
    )
    REPLICAS: int = Field(
        default=0,
        ge=0,
        description="Number of replicas attached to the primary (drives consistency levels)",
    )
    WAIT_TIMEOUT_MS: int = Field(
        default=1000,
        ge=0,
        description="Replica acknowledgment timeout for replicated consistency levels",
    )

    # --- Rollups ---
    GRANULARITIES: str = Field(
        default="all,minutely,hourly,daily,monthly,yearly",
        description="Comma-separated granularity codes every event is rolled up into",
    )
    TIMEZONE: str = Field(
        default="UTC",
        description="IANA zone whose calendar fields buckets are truncated in",
    )

    # --- Default policy ---
    CONSISTENCY_LEVEL: str = Field(
        default="QUORUM",
        description="ANY | ONE | TWO | THREE | QUORUM | ALL | LOCAL_QUORUM | EACH_QUORUM",
    )
    WRITE_MODE: str = Field(
        default="SYNC",
        description="SYNC (await acknowledgment) | ASYNC (fire-and-forget)",
    )

    # --- Platform ---
    LOG_LEVEL: str = Field(default="INFO")

    @property
    def granularity_set(self) -> Tuple[Granularity, ...]:
        """Parse the configured granularity codes."""
        return parse_granularities(self.GRANULARITIES)

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.TIMEZONE)

    model_config = {
        "env_prefix": "ROLLCOUNT_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore",
    }


# Global singleton
settings = RollcountSettings()
