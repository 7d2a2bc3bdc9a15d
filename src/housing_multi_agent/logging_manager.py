"""
Logging manager for the multi-agent housing system.
Every agent gets its own child logger under a common root name.
"""

import logging
from pathlib import Path
from typing import Dict, Any, Optional

from .config import Config

ROOT_LOGGER_NAME = "housing_multi_agent"


class LoggingManager:
    """Manages logging configuration and setup for the system."""

    def __init__(self, config: Config, console: bool = False):
        """Initialize the logging manager."""
        self.config = config
        self.console = console
        self._loggers: Dict[str, logging.Logger] = {}
        self._root: Optional[logging.Logger] = None

    def get_logger(self, name: Optional[str] = None) -> logging.Logger:
        """Get or create a logger; agent loggers propagate to the root handlers."""
        root = self._get_root()
        if not name:
            return root

        full_name = f"{ROOT_LOGGER_NAME}.{name}"
        if full_name not in self._loggers:
            logger = logging.getLogger(full_name)
            logger.setLevel(self._level())
            self._loggers[full_name] = logger
        return self._loggers[full_name]

    def _get_root(self) -> logging.Logger:
        """Create the root logger once, with file and optional console handlers."""
        if self._root is not None:
            return self._root

        logger = logging.getLogger(ROOT_LOGGER_NAME)
        logger.setLevel(self._level())
        self._root = logger
        self._loggers[ROOT_LOGGER_NAME] = logger

        # Avoid duplicate handlers
        if logger.handlers:
            return logger

        log_file = Path(self.config.logging.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(self._level())
        file_handler.setFormatter(logging.Formatter(self.config.logging.format))
        logger.addHandler(file_handler)

        # Keep the interactive console quiet: warnings and errors only
        if self.console:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.WARNING)
            console_handler.setFormatter(logging.Formatter('%(name)s - %(levelname)s - %(message)s'))
            logger.addHandler(console_handler)

        return logger

    def _level(self) -> int:
        return getattr(logging, self.config.logging.level.upper(), logging.INFO)

    def update_log_level(self, level: str) -> None:
        """Update log level for all existing loggers."""
        log_level = getattr(logging, level.upper())
        for logger in self._loggers.values():
            logger.setLevel(log_level)
            for handler in logger.handlers:
                if isinstance(handler, logging.FileHandler):
                    handler.setLevel(log_level)

    def get_system_info(self) -> Dict[str, Any]:
        """Get logging system information."""
        return {
            "log_level": self.config.logging.level,
            "log_file": self.config.logging.file,
            "active_loggers": list(self._loggers.keys())
        }
