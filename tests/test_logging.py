"""Tests for branchpilot.logging (BranchpilotLogging, level/format from config)."""

import logging

from branchpilot.config import LoggingConfig
from branchpilot.logging import (
    DEFAULT_FORMAT,
    DEFAULT_LEVEL,
    LEVELS,
    BranchpilotLogging,
    _resolve_level,
)


class TestConstants:
    """Module constants and level mapping."""

    def test_levels_has_four_standard_levels(self) -> None:
        """LEVELS maps DEBUG, INFO, WARNING, ERROR to logging constants."""
        assert LEVELS == {
            "DEBUG": logging.DEBUG,
            "INFO": logging.INFO,
            "WARNING": logging.WARNING,
            "ERROR": logging.ERROR,
        }

    def test_default_level_is_info(self) -> None:
        assert DEFAULT_LEVEL == "INFO"
        assert "%(message)s" in DEFAULT_FORMAT


class TestResolveLevel:
    """_resolve_level maps level names to logging constants."""

    def test_known_and_normalized(self) -> None:
        assert _resolve_level("DEBUG") == logging.DEBUG
        assert _resolve_level("warning") == logging.WARNING
        assert _resolve_level("  ERROR\t") == logging.ERROR

    def test_unknown_level_returns_default(self) -> None:
        assert _resolve_level("TRACE") == LEVELS[DEFAULT_LEVEL] == logging.INFO
        assert _resolve_level("") == logging.INFO


class TestBranchpilotLogging:
    """BranchpilotLogging applies LoggingConfig and --verbose to the root logger."""

    def test_setup_sets_root_level_from_config(self) -> None:
        for level_name, expected_num in LEVELS.items():
            BranchpilotLogging(LoggingConfig(level=level_name, format="%(message)s")).setup()
            assert logging.root.level == expected_num

    def test_verbose_forces_debug(self) -> None:
        """--verbose selects DEBUG whatever the configured level."""
        log = BranchpilotLogging(LoggingConfig(level="ERROR", format="%(message)s"), verbose=True)
        log.setup()
        assert log.level == logging.DEBUG
        assert logging.root.level == logging.DEBUG

    def test_setup_applies_format(self) -> None:
        custom = "%(levelname)s || %(message)s"
        BranchpilotLogging(LoggingConfig(level="INFO", format=custom)).setup()
        assert logging.root.handlers
        assert logging.root.handlers[0].formatter._fmt == custom

    def test_empty_format_uses_default(self) -> None:
        BranchpilotLogging(LoggingConfig(level="INFO", format="")).setup()
        assert logging.root.handlers[0].formatter._fmt == DEFAULT_FORMAT
