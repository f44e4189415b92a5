from __future__ import annotations

import logging
from io import StringIO

from bulk_import.logging.init import (
    LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_summary,
    setup_logging,
)


def test_setup_logging_creates_logger_with_labeled_formatter():
    logger = setup_logging()
    assert logger.name == LOGGER_NAME == "bulk_import"
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)
    assert logger.propagate is False


def test_setup_logging_idempotent():
    assert setup_logging() is setup_logging()
    assert get_logger() is setup_logging()
    assert len(get_logger().handlers) == 1


def test_debug_lowers_levels():
    logger = setup_logging(debug=True)
    assert logger.level == logging.DEBUG
    assert logger.handlers[0].level == logging.DEBUG


def test_labeled_prefixes():
    out = StringIO()
    logger = setup_logging()
    logger.handlers[0].setStream(out)
    logger.info("hello")
    logger.warning("careful")
    logger.error("broken")
    log_summary("entity=employees total=1")
    # module loggers propagate into the package logger
    logging.getLogger("bulk_import.services.executor").warning("from child")
    assert out.getvalue().splitlines() == [
        "INFO hello",
        "WARN careful",
        "ERROR broken",
        "SUMMARY entity=employees total=1",
        "WARN from child",
    ]


def test_summary_level_between_info_and_warning():
    assert logging.INFO < SUMMARY_LEVEL < logging.WARNING
