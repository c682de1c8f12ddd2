# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
API Dependencies: FastAPI dependency injection.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from rollcount.service import CounterService


async def get_counter_service(request: Request) -> CounterService:
    """The CounterService installed on app.state at startup."""
    service = getattr(request.app.state, "counter_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Counter service not initialized")
    return service
