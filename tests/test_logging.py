#!/usr/bin/env python3
"""Tests for logging configuration."""

import logging
import tempfile
from pathlib import Path

import pytest

from arbor.core.config import ArborConfig
from arbor.core.logging_config import (
    get_logger, resolve_level, setup_logging, setup_logging_from_config
)


class TestLoggingConfig:
    """Test logging configuration functionality."""

    def test_setup_logging_default(self):
        logger = setup_logging()
        assert logger.name == "arbor"
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1

    def test_setup_logging_debug_mode(self):
        """Debug mode overrides the requested level."""
        logger = setup_logging(level="WARNING", debug_mode=True)
        assert logger.level == logging.DEBUG

    def test_setup_logging_with_file(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = Path(temp_dir) / "logs" / "arbor.log"
            logger = setup_logging(log_file=str(log_file))

            assert len(logger.handlers) == 2

            logger.info("Tree created")
            for handler in logger.handlers:
                handler.flush()
            assert "Tree created" in log_file.read_text()

            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()

    def test_setup_logging_custom_format(self):
        custom_format = "%(levelname)s: %(message)s"
        logger = setup_logging(format_string=custom_format)

        for handler in logger.handlers:
            assert handler.formatter._fmt == custom_format

    def test_repeated_setup_replaces_handlers(self):
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_get_logger_prefixes_plain_names(self):
        setup_logging()
        assert get_logger("layout").name == "arbor.layout"
        assert get_logger("layout").parent.name == "arbor"

    def test_get_logger_keeps_module_names(self):
        assert get_logger("arbor.tree.tree_mutator").name == "arbor.tree.tree_mutator"
        assert get_logger("arbor").name == "arbor"

    def test_default_format(self):
        logger = setup_logging()
        assert logger.handlers[0].formatter._fmt == "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError, match="LOUD"):
            setup_logging(level="LOUD")

    def test_setup_from_config(self):
        logger = setup_logging_from_config(ArborConfig(log_level="ERROR"))
        assert logger.level == logging.ERROR

        logger = setup_logging_from_config(ArborConfig(log_level="ERROR"), debug_mode=True)
        assert logger.level == logging.DEBUG


class TestResolveLevel:
    """Test level name lookup."""

    @pytest.mark.parametrize("name,expected", [
        ("debug", logging.DEBUG),
        (" Warning ", logging.WARNING),
        ("CRITICAL", logging.CRITICAL),
        (logging.INFO, logging.INFO),
    ])
    def test_known_levels(self, name, expected):
        assert resolve_level(name) == expected

    @pytest.mark.parametrize("name", ["", "verbose", "NOTSET"])
    def test_unknown_levels(self, name):
        with pytest.raises(ValueError):
            resolve_level(name)
