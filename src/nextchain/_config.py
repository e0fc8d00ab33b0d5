"""Environment-driven settings and logging setup.

Variables
---------
    NEXTCHAIN_LOG_LEVEL    DEBUG | INFO | WARNING | ERROR | CRITICAL  (default: WARNING)
    NEXTCHAIN_LOG_FORMAT   logging format string
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

LOGGER_NAME = "nextchain"

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseModel):
    """Runtime settings of the nextchain loggers."""

    log_level: str = "WARNING"
    log_format: str = DEFAULT_LOG_FORMAT

    @field_validator("log_level")
    @classmethod
    def check_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LEVELS:
            raise ValueError(f"Unknown log level '{value}'. Available: {sorted(_LEVELS)}")
        return level

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> Settings:
        """Read ``NEXTCHAIN_*`` variables, loading ``env_file`` first if given.

        Variables already present in the environment win over the file.
        """
        if env_file is not None:
            load_dotenv(env_file)

        values: dict[str, str] = {}
        if "NEXTCHAIN_LOG_LEVEL" in os.environ:
            values["log_level"] = os.environ["NEXTCHAIN_LOG_LEVEL"]
        if "NEXTCHAIN_LOG_FORMAT" in os.environ:
            values["log_format"] = os.environ["NEXTCHAIN_LOG_FORMAT"]
        return cls(**values)


def configure_logging(settings: Settings | None = None) -> logging.Logger:
    """Attach a stream handler to the ``nextchain`` logger.

    Calling it again only updates the level and format of that handler.
    """
    settings = settings or Settings.from_env()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(settings.log_level)

    handler = next(
        (h for h in logger.handlers if getattr(h, "_nextchain", False)),
        None,
    )
    if handler is None:
        handler = logging.StreamHandler()
        handler._nextchain = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    handler.setFormatter(logging.Formatter(settings.log_format))
    return logger
