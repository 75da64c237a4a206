"""Loguru logging setup.

Standard library log records (SQLAlchemy's included) are intercepted and
forwarded to loguru so that everything goes through the same sinks.
"""

import logging
import sys
from typing import Optional

from loguru import logger

from .config import Config, get_config

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """Route standard logging records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(config: Optional[Config] = None) -> None:
    """Configure loguru sinks from the application config.

    Args:
        config: Configuration to use (defaults to the global config)
    """
    config = config or get_config()

    logger.remove()
    logger.add(sys.stderr, level=config.log_level, format=LOG_FORMAT, colorize=True)

    if config.log_file:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            config.log_file,
            level=config.log_level,
            format=LOG_FORMAT,
            rotation=config.log_rotation,
            retention=config.log_retention,
            enqueue=True,
            encoding="utf-8",
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)

    logger.debug("Logging configured at level {}", config.log_level)
