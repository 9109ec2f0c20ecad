"""
Logging setup for the School Grades backend.

All loggers hang off the ``grades`` root so a single level switch
(``LOG_LEVEL``) controls the whole service.
"""
import logging

from .settings import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
ROOT_LOGGER_NAME = "grades"


def setup_logging() -> logging.Logger:
    """Configure the package logger once and return it."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    # Avoid duplicate console handlers on re-import
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.setLevel(level)
        logger.addHandler(handler)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger or one of its children."""
    base = logging.getLogger(ROOT_LOGGER_NAME)
    return base.getChild(name) if name else base


logger = setup_logging()
