# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
Counter Errors: Unified error structure for store failures.

Usage errors (bad names, missing policy fields, unknown granularities)
are plain ValueError and raised synchronously. Everything that goes
wrong inside the store collaborator surfaces as a StoreError.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class CounterError(Exception):
    """Base counter error with a structured code, message and details."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class StoreError(CounterError):
    """The store failed to apply or serve an operation (timeout, connection, protocol)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="STORE_ERROR", message=message, details=details)


class UnavailableError(StoreError):
    """Not enough copies exist to satisfy the requested consistency level."""

    def __init__(self, consistency: str, required: int, available: int):
        super().__init__(
            message=(
                f"Consistency level {consistency} needs {required} copies "
                f"but only {available} are available"
            ),
            details={"consistency": consistency, "required": required, "available": available},
        )
        self.code = "UNAVAILABLE"


class ConsistencyNotMetError(StoreError):
    """A write reached the primary but too few replicas acknowledged it in time."""

    def __init__(self, consistency: str, required: int, acknowledged: int):
        super().__init__(
            message=(
                f"Consistency level {consistency} not met: "
                f"{acknowledged}/{required} copies acknowledged"
            ),
            details={"consistency": consistency, "required": required, "acknowledged": acknowledged},
        )
        self.code = "CONSISTENCY_NOT_MET"
