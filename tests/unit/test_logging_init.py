from __future__ import annotations

import logging
from io import StringIO

import pytest

import tablecache.logging.init as log_init
from tablecache.logging.init import (
    LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_summary,
    reset_logging,
    setup_logging,
)


@pytest.fixture(autouse=True)
def fresh_logger():
    reset_logging()
    yield
    reset_logging()


def _capture(logger: logging.Logger) -> StringIO:
    stream = StringIO()
    logger.handlers[0].setStream(stream)
    return stream


def test_setup_logging_creates_single_stdout_handler():
    logger = setup_logging()
    assert logger.name == LOGGER_NAME
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)
    assert logger.propagate is False


def test_setup_logging_is_idempotent_and_updates_level():
    first = setup_logging()
    second = setup_logging(debug=True)
    assert first is second
    assert len(second.handlers) == 1
    assert second.level == logging.DEBUG
    assert second.handlers[0].level == logging.DEBUG


def test_get_logger_configures_on_first_use():
    logger = get_logger()
    assert logger is get_logger()
    assert len(logger.handlers) == 1


def test_labeled_prefixes():
    logger = setup_logging()
    stream = _capture(logger)
    logger.info("loaded")
    logger.warning("careful")
    logger.error("broken")
    log_summary("table=People pending=0")
    logger.debug("hidden")
    assert stream.getvalue().splitlines() == [
        "INFO loaded",
        "WARN careful",
        "ERROR broken",
        "SUMMARY table=People pending=0",
    ]


def test_debug_mode_shows_library_debug_records():
    logger = setup_logging(debug=True)
    stream = _capture(logger)
    logging.getLogger("tablecache.services.reconcile").debug("reconcile table=%s", "People")
    assert stream.getvalue() == "DEBUG reconcile table=People\n"


def test_summary_level_name_registered():
    setup_logging()
    assert logging.getLevelName(SUMMARY_LEVEL) == "SUMMARY"
    assert log_init._logger is not None
