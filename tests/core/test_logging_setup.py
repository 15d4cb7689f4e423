"""Tests for logging configuration."""

import logging

import pytest

from tallr.core.logging_setup import configure_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestConfigureLogging:
    def test_writes_to_log_file(self, config):
        configure_logging(config)
        logging.getLogger("tallr.test").info("hello from test")

        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "hello from test" in config.log_path.read_text()

    def test_level_override(self, config):
        configure_logging(config, level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG

    def test_unwritable_log_file_falls_back_to_console(self, config, temp_dir):
        blocker = temp_dir / "blocker"
        blocker.write_text("")
        config.log_file = blocker / "tallr.log"

        configure_logging(config)

        handlers = logging.getLogger().handlers
        assert not any(isinstance(h, logging.FileHandler) for h in handlers)
