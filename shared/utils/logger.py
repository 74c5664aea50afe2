"""
Logging setup for the fill engine.

Every module calls ``setup_logger(__name__)``. Console output always goes to
stdout. A file log under ``LOG_DIR`` is opt-in via ``LOG_TO_FILE`` and
is never written in debug mode.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Optional

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "fill_engine.log"

_formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)


def _file_handler() -> Optional[logging.Handler]:
    if not settings.LOG_TO_FILE or settings.DEBUG:
        return None
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_dir / LOG_FILE_NAME)
    handler.setFormatter(_formatter)
    return handler


def setup_logger(name: str) -> logging.Logger:
    """
    Return the logger for ``name``, configuring it on first use.

    Args:
        name: Logger name (usually __name__ of the module)
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level = "DEBUG" if settings.DEBUG else settings.LOG_LEVEL
    logger.setLevel(level)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(_formatter)
    logger.addHandler(console)

    file_handler = _file_handler()
    if file_handler is not None:
        logger.addHandler(file_handler)

    return logger


def log_function_call(logger: logging.Logger, func_name: str, **kwargs: Any) -> None:
    """Debug-log an operation and its arguments."""
    args_str = ", ".join(f"{k}={v}" for k, v in kwargs.items())
    logger.debug(f"Calling {func_name}({args_str})")


def log_error(logger: logging.Logger, error: Exception, context: str = "") -> None:
    """
    Log an unexpected exception with context.

    The traceback is only logged in debug mode.
    """
    message = f"{type(error).__name__}: {error}"
    logger.error(f"{context}: {message}" if context else message)

    if settings.DEBUG:
        logger.exception("Full traceback:")


def log_fill_result(logger: logging.Logger, label: str, result: Any) -> None:
    """
    Log the outcome of one fill.

    Args:
        logger: Logger instance
        label: What was filled (a path or batch/job label)
        result: Anything with ``success``, ``output_path``, ``error`` and
            ``warnings`` attributes
    """
    if result.success:
        logger.debug(f"{label} -> {result.output_path}")
        for warning in result.warnings:
            logger.debug(f"{label}: {warning}")
    else:
        logger.error(f"{label} failed: {result.error}")
