#!/usr/bin/env python3
"""
Configuration for Arbor.

Centralizes paths, default settings and the optional JSON config file.
"""

import json
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from arbor.core.logging_config import get_logger, resolve_level
from arbor.layout.connection_router import RouterConfig
from arbor.layout.layout_engine import LayoutConfig
from arbor.tree.tree_constants import (
    DEFAULT_STORE_FILENAME, LOG_LEVEL_DEFAULT, PERSIST_FLUSH_DELAY_SECONDS,
    RENDER_DEBOUNCE_SECONDS
)

logger = get_logger(__name__)

CONFIG_ENV_VAR = "ARBOR_CONFIG"
STORE_ENV_VAR = "ARBOR_STORE"

# Config file locations tried in order when none is given
CONFIG_PATHS = [
    os.path.expanduser('~/.config/arbor/config.json'),
    './arbor.json',
]

DEFAULT_STORE_PATH = os.path.expanduser(f'~/.arbor/{DEFAULT_STORE_FILENAME}')


@dataclass
class ArborConfig:
    """Application settings."""
    store_path: str = DEFAULT_STORE_PATH
    log_level: str = LOG_LEVEL_DEFAULT
    log_file: Optional[str] = None
    render_debounce_seconds: float = RENDER_DEBOUNCE_SECONDS
    persist_flush_delay_seconds: float = PERSIST_FLUSH_DELAY_SECONDS
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    router: RouterConfig = field(default_factory=RouterConfig)


def find_config_file() -> Optional[str]:
    """
    Find the config file in standard locations.

    Returns:
        str: Path to the config file if found, None otherwise
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return env_path if os.path.exists(env_path) else None

    for path in CONFIG_PATHS:
        if os.path.exists(path):
            return path

    return None


def _apply_section(base: Any, values: Dict[str, Any], section: str) -> Any:
    known = {f.name for f in fields(base)}
    unknown = set(values) - known
    if unknown:
        logger.warning(f"Ignoring unknown {section} settings: {sorted(unknown)}")
    updates = {k: v for k, v in values.items() if k in known}
    if 'node_sizes' in updates:
        updates['node_sizes'] = tuple(tuple(size) for size in updates['node_sizes'])
    return replace(base, **updates)


def config_from_dict(data: Dict[str, Any]) -> ArborConfig:
    """Build a config from a parsed JSON object, starting from defaults."""
    data = dict(data)
    layout_values = data.pop('layout', None) or {}
    router_values = data.pop('router', None) or {}

    config = _apply_section(ArborConfig(), data, "top-level")
    # Unknown level names fail here rather than when logging is set up
    if not isinstance(config.log_level, str):
        raise ValueError(f"log_level must be a level name, got {config.log_level!r}")
    resolve_level(config.log_level)
    config.log_level = config.log_level.strip().upper()
    config.layout = _apply_section(config.layout, layout_values, "layout")
    config.router = _apply_section(config.router, router_values, "router")
    return config


def load_config(path: Optional[str] = None) -> ArborConfig:
    """
    Load configuration.

    Args:
        path: Explicit config file; otherwise ARBOR_CONFIG or standard locations

    Returns:
        ArborConfig with file values over defaults, and ARBOR_STORE over both
    """
    config_path = path or find_config_file()
    config = ArborConfig()

    if config_path:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Config file {config_path} must contain a JSON object")
        config = config_from_dict(data)
        logger.debug(f"Loaded config from {config_path}")

    store_override = os.environ.get(STORE_ENV_VAR)
    if store_override:
        config.store_path = store_override

    config.store_path = os.path.expanduser(config.store_path)
    return config
