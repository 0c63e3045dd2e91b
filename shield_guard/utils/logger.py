"""Logger utility for ShieldGuard.

Every component logs through a child of one package parent logger so that a
host application can route, silence or re-level the whole engine at once.
Failures that the engine deliberately swallows (best-effort writes, attack
logging) are reported on a dedicated ``ops`` child logger.
"""

import logging
import logging.handlers
import sys
from typing import Any, Dict, Optional

DEFAULT_PARENT_LOGGER = "shield_guard"
OPS_LOGGER_NAME = "ops"

DEFAULT_LOGGING_CONFIG: Dict[str, Any] = {
    "level": "INFO",
    "parent_logger": None,
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    "date_format": "%Y-%m-%d %H:%M:%S",
    "enable_console": True,
    "enable_file": False,
    "file_path": None,
    "max_file_size": 10485760,
    "backup_count": 5,
}


class ColorFormatter(logging.Formatter):
    """Adds ANSI colours to the level name when writing to a terminal."""

    COLORS = {
        "DEBUG": "\033[94m",  # Blue
        "INFO": "\033[92m",  # Green
        "WARNING": "\033[93m",  # Yellow
        "ERROR": "\033[91m",  # Red
        "CRITICAL": "\033[95m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, fmt=None, datefmt=None, use_color: Optional[bool] = None):
        super().__init__(fmt, datefmt)
        self.use_color = sys.stdout.isatty() if use_color is None else use_color

    def format(self, record):
        msg = super().format(record)
        if not self.use_color:
            return msg
        color = self.COLORS.get(record.levelname, self.RESET)
        return f"{color}{msg}{self.RESET}"


class LoggerManager:
    """Owns the package parent logger and hands out child loggers."""

    def __init__(self):
        self._loggers: Dict[str, logging.Logger] = {}
        self._configured = False
        self._config: Optional[Dict[str, Any]] = None

    def configure(self, config: Dict[str, Any]) -> None:
        """Configure the parent logger.

        Args:
            config: The ``logging`` section of the engine configuration
        """
        self._config = dict(DEFAULT_LOGGING_CONFIG, **(config or {}))
        self._configured = True
        self._configure_parent_logger()

    @property
    def parent_name(self) -> str:
        return (self._config or {}).get("parent_logger") or DEFAULT_PARENT_LOGGER

    def _configure_parent_logger(self) -> None:
        if not self._config:
            return

        parent_logger = logging.getLogger(self.parent_name)

        # Avoid duplicate handlers on reconfiguration
        parent_logger.handlers.clear()

        level_str = self._config.get("level", "INFO")
        parent_logger.setLevel(getattr(logging, str(level_str).upper(), logging.INFO))

        log_format = self._config.get("format", DEFAULT_LOGGING_CONFIG["format"])
        date_format = self._config.get("date_format", DEFAULT_LOGGING_CONFIG["date_format"])

        if self._config.get("enable_console", True):
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(ColorFormatter(log_format, date_format))
            parent_logger.addHandler(console_handler)

        if self._config.get("enable_file", False):
            file_path = self._config.get("file_path")
            if file_path:
                file_handler = logging.handlers.RotatingFileHandler(
                    file_path,
                    maxBytes=self._config.get("max_file_size", 10485760),
                    backupCount=self._config.get("backup_count", 5),
                )
                file_handler.setFormatter(logging.Formatter(log_format, date_format))
                parent_logger.addHandler(file_handler)

        parent_logger.propagate = False

    def get_logger(self, name: str) -> logging.Logger:
        """Get or create a child of the parent logger.

        Args:
            name: Component name, e.g. ``"reputation.manager"``

        Returns:
            Logger named ``<parent>.<name>``
        """
        if not self._configured:
            self.configure({})

        full_name = f"{self.parent_name}.{name}"
        if full_name not in self._loggers:
            self._loggers[full_name] = logging.getLogger(full_name)
        return self._loggers[full_name]

    def set_level(self, level: str) -> None:
        if self._config:
            self._config["level"] = level
            self._configure_parent_logger()


_logger_manager = LoggerManager()


def configure_logging(config: Dict[str, Any]) -> None:
    """Configure package logging from the ``logging`` config section."""
    _logger_manager.configure(config)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a component.

    Example:
        logger = get_logger("throttling.manager")
        logger.info("window committed")
    """
    return _logger_manager.get_logger(name)


def get_ops_logger() -> logging.Logger:
    """Logger for failures that are reported and then swallowed."""
    return _logger_manager.get_logger(OPS_LOGGER_NAME)


def set_log_level(level: str) -> None:
    """Change the level of the package parent logger."""
    _logger_manager.set_level(level)
