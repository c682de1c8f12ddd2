# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
Rollcount Application Entry Point.

FastAPI app whose lifespan connects the counter service to Redis.

Run: uvicorn rollcount.main:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from rollcount.api.counters import router as counters_router
from rollcount.api.errors import counter_error_handler, usage_error_handler
from rollcount.api.observability import router as observability_router
from rollcount.core.config import settings
from rollcount.core.errors import CounterError
from rollcount.core.logging import setup_logging
from rollcount.service import CounterService

logger = logging.getLogger("rollcount.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup/shutdown of the counter service."""
    # Startup
    setup_logging(settings.LOG_LEVEL)
    service = CounterService.from_settings(settings)
    app.state.counter_service = service
    logger.info("[Rollcount] Ready")
    yield
    # Shutdown
    await service.close()
    app.state.counter_service = None
    logger.info("[Rollcount] Shutdown complete")


app = FastAPI(
    title="Rollcount",
    description="Distributed event counters with time rollups and online statistics",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Error Handlers ──────────────────────────────────────────
app.add_exception_handler(CounterError, counter_error_handler)
app.add_exception_handler(ValueError, usage_error_handler)

# ── Routes ──────────────────────────────────────────────────
app.include_router(counters_router, prefix="/api")
app.include_router(observability_router)
