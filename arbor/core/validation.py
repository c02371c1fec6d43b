#!/usr/bin/env python3
"""Input validation utilities for Arbor."""

import re
from pathlib import Path
from typing import Optional

from arbor.core.logging_config import get_logger
from arbor.tree.tree_constants import ERROR_MESSAGES, MAX_TITLE_LENGTH, VALID_SHAPES

logger = get_logger(__name__)

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def validate_file_path(file_path: str, must_exist: bool = True) -> Optional[Path]:
    """
    Validate and normalize a file path.

    Args:
        file_path: Path to validate
        must_exist: Whether the file must exist

    Returns:
        Normalized Path object if valid, None otherwise. A path naming a
        directory is never valid.
    """
    try:
        path = Path(file_path).expanduser().resolve()

        if must_exist and not path.exists():
            logger.warning(f"File does not exist: {path}")
            return None

        if path.is_dir():
            logger.warning(f"Path is a directory, not a file: {path}")
            return None

        return path

    except (OSError, ValueError) as e:
        logger.error(f"Invalid file path '{file_path}': {e}")
        return None


def validate_color(color: str) -> str:
    """Return a normalized lowercase hex color or raise ValueError."""
    if not isinstance(color, str) or not _HEX_COLOR.match(color.strip()):
        raise ValueError(ERROR_MESSAGES["INVALID_COLOR"].format(color=color))
    return color.strip().lower()


def validate_shape(shape: str) -> str:
    """Return the shape if it is one of the supported node shapes."""
    if shape not in VALID_SHAPES:
        raise ValueError(ERROR_MESSAGES["INVALID_SHAPE"].format(shape=shape))
    return shape


def sanitize_title(title: Optional[str], max_length: int = MAX_TITLE_LENGTH) -> str:
    """Collapse whitespace and clip a display title."""
    if not title:
        return ""
    cleaned = " ".join(title.split())
    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length - 3] + "..."
    return cleaned
