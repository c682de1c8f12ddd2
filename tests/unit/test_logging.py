# Copyright (c) 2026 Rollcount Contributors. All Rights Reserved.
"""Unit tests for structured logging."""

import json
import logging
import sys

from rollcount.core.logging import StructuredFormatter, setup_logging
from rollcount.protocols.granularity import Granularity
from rollcount.protocols.policy import ConsistencyLevel


def _record(msg="hello", **extra):
    record = logging.LogRecord("rollcount.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_basic_fields(self):
        entry = json.loads(StructuredFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["module"] == "rollcount.test"
        assert entry["message"] == "hello"
        assert "counter" not in entry

    def test_counter_context(self):
        entry = json.loads(StructuredFormatter().format(_record(
            counter="logins",
            granularity=Granularity.DAY,
            consistency=ConsistencyLevel.QUORUM,
        )))
        assert entry["counter"] == "logins"
        assert entry["granularity"] == "daily"
        assert entry["consistency"] == "QUORUM"

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record()
            record.exc_info = sys.exc_info()
        entry = json.loads(StructuredFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]


def test_setup_logging_installs_json_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging("debug")
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
