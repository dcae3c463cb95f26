"""
Logging configuration tests.
"""

import logging

import pytest

from walleth.errors import DuplicateSeed
from walleth.log import LOGGER_NAME, configure_logging
from walleth.wallet import hdkey_factory

from .conftest import MNEMONIC


@pytest.fixture
def logger():
    target = logging.getLogger("walleth.tests.log")
    yield target
    for handler in list(target.handlers):
        target.removeHandler(handler)


def test_adds_console_handler_once(logger):
    configure_logging(logging.DEBUG, logger=logger)
    configure_logging(logging.DEBUG, logger=logger)
    stream_handlers = [h for h in logger.handlers if isinstance(h, logging.StreamHandler)]
    assert len(stream_handlers) == 1
    assert logger.level == logging.DEBUG


def test_level_by_name(logger):
    configure_logging("warning", logger=logger)
    assert logger.level == logging.WARNING


def test_unknown_level_name(logger):
    with pytest.raises(ValueError):
        configure_logging("chatty", logger=logger)


def test_library_logger_is_silent_by_default():
    handlers = logging.getLogger(LOGGER_NAME).handlers
    assert any(isinstance(h, logging.NullHandler) for h in handlers)


def test_duplicate_rejection_is_logged(caplog, keychain):
    keychain.add(hdkey_factory, MNEMONIC)
    with caplog.at_level(logging.WARNING, logger=LOGGER_NAME):
        with pytest.raises(DuplicateSeed):
            keychain.add(hdkey_factory, MNEMONIC)
    assert "duplicate" in caplog.text
    assert MNEMONIC.split()[0] not in caplog.text
