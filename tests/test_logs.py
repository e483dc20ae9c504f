from __future__ import annotations

import logging

from unitwork.logs import StdlibLogger, get_logger
from unitwork.ports import LoggerPort


def test_stdlib_logger_renders_fields(caplog):
    caplog.set_level(logging.ERROR, logger="unitwork")
    logger = get_logger()

    logger.error("failed to rollback transaction", error="boom", phase="body")

    assert len(caplog.records) == 1
    record = caplog.records[0]
    assert record.levelno == logging.ERROR
    assert record.getMessage() == (
        "failed to rollback transaction error=boom phase=body"
    )
    assert record.fields == {"error": "boom", "phase": "body"}


def test_stdlib_logger_skips_disabled_levels(caplog):
    caplog.set_level(logging.WARNING, logger="unitwork.test")
    logger = StdlibLogger(logging.getLogger("unitwork.test"))

    logger.debug("transaction started")
    logger.info("noise")
    logger.warning("careful")

    assert [r.getMessage() for r in caplog.records] == ["careful"]


def test_stdlib_logger_is_a_logger_port():
    assert isinstance(get_logger(), LoggerPort)
