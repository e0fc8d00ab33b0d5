"""Tests for _config.py — Settings, configure_logging."""

import logging
import os

import pytest
from pydantic import ValidationError

from nextchain._config import DEFAULT_LOG_FORMAT, LOGGER_NAME, Settings, configure_logging

_ENV_VARS = ("NEXTCHAIN_LOG_LEVEL", "NEXTCHAIN_LOG_FORMAT")


# ---------------------------------------------------------------------------
# Isolation — reset environment and package logger between every test
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def reset_env_and_logger():
    original_env = {name: os.environ.pop(name) for name in _ENV_VARS if name in os.environ}
    logger = logging.getLogger(LOGGER_NAME)
    original_handlers = list(logger.handlers)
    original_level = logger.level

    yield

    for name in _ENV_VARS:
        os.environ.pop(name, None)
    os.environ.update(original_env)
    logger.handlers[:] = original_handlers
    logger.setLevel(original_level)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.log_level == "WARNING"
        assert settings.log_format == DEFAULT_LOG_FORMAT

    def test_level_is_normalised(self):
        assert Settings(log_level=" debug ").log_level == "DEBUG"

    def test_unknown_level_raises(self):
        with pytest.raises(ValidationError, match="Unknown log level"):
            Settings(log_level="LOUD")

    def test_from_env_reads_variables(self):
        os.environ["NEXTCHAIN_LOG_LEVEL"] = "info"
        os.environ["NEXTCHAIN_LOG_FORMAT"] = "%(message)s"

        settings = Settings.from_env()
        assert settings.log_level == "INFO"
        assert settings.log_format == "%(message)s"

    def test_from_env_without_variables_uses_defaults(self):
        assert Settings.from_env() == Settings()

    def test_from_env_loads_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("NEXTCHAIN_LOG_LEVEL=ERROR\n")

        assert Settings.from_env(env_file).log_level == "ERROR"

    def test_environment_wins_over_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("NEXTCHAIN_LOG_LEVEL=ERROR\n")
        os.environ["NEXTCHAIN_LOG_LEVEL"] = "DEBUG"

        assert Settings.from_env(env_file).log_level == "DEBUG"


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------

class TestConfigureLogging:
    def _own_handlers(self, logger):
        return [h for h in logger.handlers if getattr(h, "_nextchain", False)]

    def test_sets_level_and_adds_handler(self):
        logger = configure_logging(Settings(log_level="DEBUG"))
        assert logger.name == LOGGER_NAME
        assert logger.level == logging.DEBUG
        assert len(self._own_handlers(logger)) == 1

    def test_is_idempotent(self):
        configure_logging(Settings(log_level="DEBUG"))
        logger = configure_logging(Settings(log_level="ERROR", log_format="%(message)s"))

        handlers = self._own_handlers(logger)
        assert len(handlers) == 1
        assert logger.level == logging.ERROR
        assert handlers[0].formatter._fmt == "%(message)s"

    def test_reads_environment_by_default(self):
        os.environ["NEXTCHAIN_LOG_LEVEL"] = "INFO"
        assert configure_logging().level == logging.INFO

    def test_component_loggers_propagate_to_package_logger(self, caplog):
        import nextchain

        configure_logging(Settings(log_level="WARNING"))
        deferred = nextchain.SettlableFuture()
        deferred.fulfill(1)

        with caplog.at_level(logging.WARNING, logger=LOGGER_NAME):
            deferred.fulfill(2)
        assert "cannot be fulfilled/failed multiple times" in caplog.text
