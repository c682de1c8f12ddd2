# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
Counters API: record events, read rollups, delete counters.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from rollcount.api.deps import get_counter_service
from rollcount.counter import Counter
from rollcount.protocols.granularity import Granularity
from rollcount.service import CounterService

router = APIRouter(prefix="/counters", tags=["counters"])


class Statistic(str, Enum):
    COUNTS = "counts"
    SUMS = "sums"
    SQUARES = "squares"
    MEANS = "means"
    DEVIATIONS = "deviations"
    VARIANCES = "variances"


class EventRequest(BaseModel):
    time: Optional[datetime] = Field(default=None, description="Event time (default: now)")
    value: Optional[int] = Field(default=None, description="Event value for means/deviations/variances")


def _counter(service: CounterService, name: str, consistency: Optional[str]) -> Counter:
    counter = service.get_counter(name)
    if consistency is not None:
        counter.set_consistency_level(consistency)
    return counter


def _buckets(values: Dict[datetime, float]) -> list[dict]:
    return [
        {"time": t.isoformat(), "value": None if isinstance(v, float) and math.isnan(v) else v}
        for t, v in values.items()
    ]


@router.post("/{name}/events", status_code=202)
async def record_event(
    name: str,
    req: EventRequest,
    consistency: Optional[str] = Query(default=None),
    service: CounterService = Depends(get_counter_service),
):
    """Count one event; SYNC policies answer after the store acknowledged it."""
    counter = _counter(service, name, consistency)
    pending = await counter.increment(req.time, req.value)
    return {"name": name, "status": "accepted" if pending is not None else "applied"}


@router.get("/{name}/{statistic}")
async def read_statistic(
    name: str,
    statistic: Statistic,
    granularity: str = Query(..., description="all | minutely | hourly | daily | monthly | yearly"),
    start: Optional[datetime] = Query(default=None),
    finish: Optional[datetime] = Query(default=None),
    consistency: Optional[str] = Query(default=None),
    service: CounterService = Depends(get_counter_service),
):
    """Read one statistic by bucket, ascending; bounds inclusive."""
    counter = _counter(service, name, consistency)
    resolved = Granularity.from_code(granularity)
    readers = {
        Statistic.COUNTS: counter.get_counts,
        Statistic.SUMS: counter.get_sums,
        Statistic.SQUARES: counter.get_squares,
        Statistic.MEANS: counter.get_means,
        Statistic.DEVIATIONS: counter.get_deviations,
        Statistic.VARIANCES: counter.get_variances,
    }
    values = await readers[statistic](resolved, start, finish)
    return {
        "name": name,
        "statistic": statistic.value,
        "granularity": resolved.code,
        "buckets": _buckets(values),
    }


@router.delete("/{name}")
async def delete_counter(
    name: str,
    consistency: Optional[str] = Query(default=None),
    service: CounterService = Depends(get_counter_service),
):
    """Delete every cell of a counter."""
    await _counter(service, name, consistency).delete()
    return {"name": name, "status": "deleted"}
