# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.

"""
Structured Logging: one JSON object per line.

Engine modules pass counter context through `extra=`:

    logger.debug("Applied %d cells", n, extra={"counter": name, "consistency": level})

and the formatter lifts those fields into the JSON entry, rendering enum
members by their value.
"""

from __future__ import annotations

import json
import logging
import sys

CONTEXT_FIELDS = ("counter", "granularity", "kind", "consistency", "write_mode")


class StructuredFormatter(logging.Formatter):
    """Formats records as JSON carrying the counter context fields present on them."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = getattr(value, "value", value)

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False)


def setup_logging(level: str = "INFO") -> None:
    """Route every logger through one stdout handler using StructuredFormatter."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    root.addHandler(handler)
