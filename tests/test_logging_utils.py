#!/usr/bin/env python3
"""
Tests for logging helpers
"""

import io
import logging

import pytest

from testexec.shared.logging_utils import (
    LEVEL_COLORS,
    SEPARATOR_WIDTH,
    ColoredFormatter,
    banner,
    log_exception,
    separator,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_separator():
    assert separator() == "-" * SEPARATOR_WIDTH
    assert separator("=") == "=" * 80


def test_banner():
    lines = banner("Launching unit test 'g.t'").split("\n")
    assert lines == ["", "-" * 80, "Launching unit test 'g.t'", "-" * 80]


def test_colored_formatter_leaves_record_untouched():
    record = logging.makeLogRecord({"levelname": "ERROR", "levelno": logging.ERROR, "msg": "boom"})
    text = ColoredFormatter("%(levelname)s %(message)s").format(record)

    assert LEVEL_COLORS["ERROR"] in text
    assert record.levelname == "ERROR"


def test_setup_logging_writes_file(tmp_path, restore_root_logger):
    log_file = tmp_path / "logs" / "run.log"
    stream = io.StringIO()
    setup_logging(level=logging.INFO, log_file=log_file, stream=stream)

    logging.getLogger("testexec.sample").info("spawned child")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "spawned child" in stream.getvalue()
    assert "spawned child" in log_file.read_text()
    # StringIO is not a TTY
    assert "\033[" not in stream.getvalue()


def test_log_exception(caplog):
    logger = logging.getLogger("testexec.sample")
    try:
        raise ValueError("bad value")
    except ValueError as e:
        with caplog.at_level(logging.DEBUG, logger="testexec.sample"):
            log_exception(logger, e, "test 'g.t'")

    assert "Exception occurred during test 'g.t': ValueError: bad value" in caplog.text
    assert "Traceback:" in caplog.text
