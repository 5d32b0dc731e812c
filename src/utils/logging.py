"""Logging setup and a context-carrying adapter for pipeline logs."""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

from src.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Libraries that are chatty at DEBUG
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine", "aiosqlite", "asyncio")


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger on stdout.

    The level comes from ``level``, then ``LOG_LEVEL``, then the environment
    (INFO in production, DEBUG elsewhere).
    """
    settings = get_settings()
    level = (level or settings.log_level or ("INFO" if settings.is_production else "DEBUG")).upper()

    logging.basicConfig(
        level=getattr(logging, level),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext(logging.LoggerAdapter):
    """Prefix messages with ``[key=value]`` pairs (user id, algorithm, stage).

    Example:
        log = LogContext(logger, user_id=42)
        log.bind(algorithm="person_twins_v1").warning("generator failed")
        # -> "[user_id=42] [algorithm=person_twins_v1] generator failed"
    """

    def __init__(self, logger: logging.Logger, **context: object) -> None:
        super().__init__(logger, dict(context))
        self.prefix = " ".join(f"[{k}={v}]" for k, v in context.items())

    def bind(self, **context: object) -> "LogContext":
        """Same logger, extra context."""
        return LogContext(self.logger, **{**self.extra, **context})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        return f"{self.prefix} {msg}", kwargs
