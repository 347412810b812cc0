"""
Logging setup for the ``graph_link`` logger hierarchy.

Only loggers under the package root are touched, so host applications keep
control of the root logger. Everything installed here is undone by
``cleanup``, including level changes.
"""

import logging
import sys
from typing import Dict, Optional

from ..config.models import LoggingConfig, LogLevel
from .filters import SensitiveDataFilter
from .formatters import ColoredFormatter, StructuredFormatter


def _level(level: LogLevel) -> int:
    return logging.getLevelName(LogLevel(level).value)


class LoggingManager:
    """Installs and removes handlers on the package logger."""

    def __init__(self, root: str = "graph_link") -> None:
        self.root = root
        self._handlers: Dict[str, logging.Handler] = {}
        self._saved_levels: Dict[str, int] = {}
        self._configured = False

    @property
    def logger(self) -> logging.Logger:
        return logging.getLogger(self.root)

    def setup_logging(self, config: LoggingConfig) -> None:
        """
        Apply a logging configuration, replacing any earlier one.

        Args:
            config: Levels, console format and per-logger overrides
        """
        self.cleanup()

        self.set_level(config.level)
        for name, level in config.component_levels.items():
            self.set_level(level, name)

        if config.enable_console:
            self.add_handler("console", self._console_handler(config))

        self._configured = True
        self.logger.debug(
            f"Logging configured at {LogLevel(config.level).value}"
            f" ({'structured' if config.enable_structured else 'console'})"
        )

    def _console_handler(self, config: LoggingConfig) -> logging.Handler:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            StructuredFormatter() if config.enable_structured else ColoredFormatter(config.format)
        )
        # Init payloads and headers are logged at debug level
        handler.addFilter(SensitiveDataFilter())
        return handler

    def set_level(self, level: LogLevel, component: Optional[str] = None) -> None:
        """
        Set the level of the package logger or of one logger below it.

        The previous level is restored by ``cleanup``.
        """
        target = logging.getLogger(component or self.root)
        self._saved_levels.setdefault(target.name, target.level)
        target.setLevel(_level(level))

    def add_handler(self, name: str, handler: logging.Handler) -> None:
        """Attach a handler to the package logger under a name."""
        self.remove_handler(name)
        self.logger.addHandler(handler)
        self._handlers[name] = handler

    def remove_handler(self, name: str) -> None:
        """Detach and close a named handler; unknown names are ignored."""
        handler = self._handlers.pop(name, None)
        if handler is None:
            return
        self.logger.removeHandler(handler)
        handler.close()

    def cleanup(self) -> None:
        """Remove installed handlers and restore saved levels."""
        for name in list(self._handlers):
            self.remove_handler(name)
        for name, level in self._saved_levels.items():
            logging.getLogger(name).setLevel(level)
        self._saved_levels.clear()
        self._configured = False

    def is_configured(self) -> bool:
        return self._configured


_manager = LoggingManager()


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure ``graph_link`` logging; defaults apply when config is None."""
    _manager.setup_logging(config or LoggingConfig())


def cleanup_logging() -> None:
    """Undo ``setup_logging``."""
    _manager.cleanup()
