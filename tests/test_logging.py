"""
Tests for logging setup.
"""

import logging

import pytest

from bucketspool.utils.logging import ROOT_LOGGER, get_logger, setup_logging, setup_logging_from_config


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


class TestSetupLogging:
    def test_level_from_name(self):
        logger = setup_logging(level="debug", console_enabled=False)
        assert logger.level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        assert setup_logging(level="chatty", console_enabled=False).level == logging.INFO

    def test_handlers_replaced_not_stacked(self):
        setup_logging(use_rich=False)
        logger = setup_logging(use_rich=False)
        assert len(logger.handlers) == 1

    def test_file_from_config(self, tmp_path):
        setup_logging_from_config(
            {"logging": {"file": "logs/spool.log", "console_enabled": False, "file_mode": "w"}}, tmp_path
        )
        get_logger("bucketspool.test").info("hello from the spooler")
        for handler in logging.getLogger(ROOT_LOGGER).handlers:
            handler.flush()
        content = (tmp_path / "logs" / "spool.log").read_text()
        assert "hello from the spooler" in content
        assert "bucketspool.test" in content

    def test_records_propagate(self, caplog):
        setup_logging(console_enabled=False)
        with caplog.at_level(logging.INFO, logger=ROOT_LOGGER):
            get_logger("bucketspool.spool").info("visible")
        assert "visible" in caplog.text
