# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
API Error Handling: Unified error structure.
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from rollcount.core.errors import CounterError, StoreError


async def counter_error_handler(request: Request, exc: CounterError) -> JSONResponse:
    """Store-side failures are the server's problem: 503."""
    status_code = 503 if isinstance(exc, StoreError) else 500
    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def usage_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Usage errors raised by the engine (bad name, granularity, value)."""
    return JSONResponse(
        status_code=422,
        content={"code": "INVALID_REQUEST", "message": str(exc), "details": {}},
    )
