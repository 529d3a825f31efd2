"""
Tests for the logging setup.
"""

import logging

import pytest

from freelance_marketplace_api.app.core.logging_config import QUIET_LOGGERS, setup_logging


@pytest.fixture
def restore_levels():
    root = logging.getLogger()
    saved = {name: logging.getLogger(name).level for name in QUIET_LOGGERS}
    saved_root = root.level
    yield
    root.setLevel(saved_root)
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


def test_quiet_loggers_applied_when_handlers_exist(restore_levels):
    root = logging.getLogger()
    handler = logging.NullHandler()
    root.addHandler(handler)
    try:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.NOTSET)
        handler_count = len(root.handlers)

        setup_logging("debug")

        assert root.level == logging.DEBUG
        assert len(root.handlers) == handler_count
        for name, level in QUIET_LOGGERS.items():
            assert logging.getLogger(name).level == level
    finally:
        root.removeHandler(handler)


def test_unknown_level_falls_back_to_info(restore_levels):
    setup_logging("chatty")
    assert logging.getLogger().level == logging.INFO
