#!/usr/bin/env python3
"""
Logging setup for Arbor.

Every module logs under the ``arbor`` logger. Handlers are only ever attached
to that logger, so an application embedding Arbor keeps its own root logger
untouched.
"""

import logging
import sys
from pathlib import Path
from typing import Any, List, Optional, Union

from arbor.tree.tree_constants import LOG_FORMAT, LOG_LEVEL_DEFAULT

ROOT_LOGGER_NAME = "arbor"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def resolve_level(level: Union[str, int]) -> int:
    """
    Turn a level name such as ``"warning"`` into its numeric value.

    Raises:
        ValueError: If the name is not one of LOG_LEVELS
    """
    if isinstance(level, int):
        return level
    name = str(level).strip().upper()
    if name not in LOG_LEVELS:
        raise ValueError(f"Unknown log level {level!r}, expected one of {', '.join(LOG_LEVELS)}")
    return getattr(logging, name)


def setup_logging(
    level: Union[str, int] = LOG_LEVEL_DEFAULT,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    debug_mode: bool = False
) -> logging.Logger:
    """
    Configure the ``arbor`` logger, replacing handlers from any earlier call.

    Args:
        level: Level name or number for the logger and its handlers
        log_file: Also append records to this file, creating its directory
        format_string: Record format; LOG_FORMAT when omitted
        debug_mode: Force DEBUG regardless of ``level``

    Returns:
        The configured ``arbor`` logger

    Raises:
        ValueError: If ``level`` is not a known level name
    """
    numeric_level = logging.DEBUG if debug_mode else resolve_level(level)
    formatter = logging.Formatter(format_string or LOG_FORMAT)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(numeric_level)
    for old_handler in list(logger.handlers):
        logger.removeHandler(old_handler)
        old_handler.close()

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding='utf-8'))

    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.debug(f"Logging at {logging.getLevelName(numeric_level)}"
                 + (f", copying to {log_file}" if log_file else ""))
    return logger


def setup_logging_from_config(config: Any, debug_mode: bool = False) -> logging.Logger:
    """Configure logging from an ArborConfig's ``log_level`` and ``log_file``."""
    return setup_logging(level=config.log_level, log_file=config.log_file,
                         debug_mode=debug_mode)


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the arbor hierarchy.

    Module names that already start with ``arbor.`` are used as-is so that
    ``get_logger(__name__)`` does not produce ``arbor.arbor.*``.
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
