"""Logging from config, env and the --verbose flag.

Levels (inclusive):
- ERROR: critical errors only
- WARNING: non-critical issues (restore/stash/publish warnings) and ERROR
- INFO: per-ticket progress, WARNING, and ERROR
- DEBUG: git/API commands and all levels above

Configure via the global config (logging.level, logging.format), env
(LOGGING_LEVEL, LOGGING_FORMAT) or --verbose, which forces DEBUG. The level
is applied once at startup; components take an explicit logger argument.
"""

import logging

from branchpilot.config import LoggingConfig

# Supported levels only (DEBUG, INFO, WARNING, ERROR)
LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

DEFAULT_LEVEL = "INFO"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve_level(level: str) -> int:
    """Map level name to logging constant.

    Falls back to DEFAULT_LEVEL if unknown.
    """
    return LEVELS.get(level.upper().strip(), LEVELS[DEFAULT_LEVEL])


class BranchpilotLogging:
    """Configures root logger from LoggingConfig and the verbose flag."""

    def __init__(self, config: LoggingConfig, verbose: bool = False) -> None:
        """Store logging config (level and format); verbose overrides level."""
        self._level = logging.DEBUG if verbose else _resolve_level(config.level)
        self._format = config.format or DEFAULT_FORMAT

    @property
    def level(self) -> int:
        return self._level

    def setup(self) -> None:
        """Apply level and format to the root logger."""
        logging.basicConfig(
            level=self._level,
            format=self._format,
            force=True,
        )
