# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
Observability API: Metrics and health check.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from rollcount.api.deps import get_counter_service
from rollcount.core.metrics import engine_metrics
from rollcount.service import CounterService

router = APIRouter(tags=["observability"])


@router.get("/health")
async def health_check(service: CounterService = Depends(get_counter_service)):
    """Health check with store status."""
    engine_metrics.set_gauge("pending_async_writes", service.pending_writes)
    return {
        "status": "ok",
        "version": "0.1.0",
        "store": await service.store.info(),
        "granularities": [g.code for g in service.schema.granularities],
        "metrics": engine_metrics.snapshot(),
    }


@router.get("/api/metrics")
async def get_metrics():
    """Return current engine metrics."""
    return engine_metrics.snapshot()
