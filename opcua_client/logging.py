"""
Centralized logging module for the OPC UA client.

This module provides a singleton logger that can be bound to an external
logging accessor (for embedding in a host runtime) while falling back to
the standard library logger named ``opcua_client``.
"""

from datetime import datetime, timezone
from typing import Optional, Callable
import json
import logging
import sys

LOGGER_NAME = "opcua_client"

# asyncua is chatty at INFO; these are quieted by configure_logging()
NOISY_LOGGERS = ("asyncua",)


class JsonFormatter(logging.Formatter):
    """Format log records as JSON strings."""
    log_id = 0

    def format(self, record):
        msg = record.getMessage()
        self.log_id += 1

        # Try to detect pre-formatted JSON
        if msg.strip().startswith("{") and msg.strip().endswith("}"):
            try:
                parsed = json.loads(msg)
                if "timestamp" not in parsed:
                    parsed["timestamp"] = datetime.now(timezone.utc).isoformat()
                parsed["id"] = self.log_id
                return json.dumps(parsed)

            except json.JSONDecodeError:
                pass

        log_entry = {
            "id": self.log_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": msg,
        }
        return json.dumps(log_entry)


class OpcuaLogger:
    """
    Singleton logger for the OPC UA client.

    Routes messages to an external accessor when one is bound,
    falls back to the ``opcua_client`` standard library logger otherwise.
    """

    _instance: Optional['OpcuaLogger'] = None

    def __init__(self):
        self._log_info_fn: Optional[Callable[[str], None]] = None
        self._log_warn_fn: Optional[Callable[[str], None]] = None
        self._log_error_fn: Optional[Callable[[str], None]] = None
        self._initialized = False
        self._logger = logging.getLogger(LOGGER_NAME)

    @classmethod
    def get_instance(cls) -> 'OpcuaLogger':
        """Get the singleton logger instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance. Useful for testing."""
        cls._instance = None

    def initialize(self, logging_accessor) -> bool:
        """
        Bind the logger to an external logging accessor.

        Args:
            logging_accessor: Object exposing log_info/log_warn/log_error
                callables and an ``is_valid`` flag

        Returns:
            True if initialization successful, False otherwise
        """
        if logging_accessor is None:
            return False

        if not getattr(logging_accessor, 'is_valid', False):
            return False

        self._log_info_fn = getattr(logging_accessor, 'log_info', None)
        self._log_warn_fn = getattr(logging_accessor, 'log_warn', None)
        self._log_error_fn = getattr(logging_accessor, 'log_error', None)
        self._initialized = True
        return True

    @property
    def is_bound(self) -> bool:
        return self._initialized

    def debug(self, message: str) -> None:
        """Log a debug message. Never forwarded to the accessor."""
        self._logger.debug(message)

    def info(self, message: str) -> None:
        """Log an informational message."""
        if self._initialized and self._log_info_fn:
            self._log_info_fn(message)
            return
        self._logger.info(message)

    def warn(self, message: str) -> None:
        """Log a warning message."""
        if self._initialized and self._log_warn_fn:
            self._log_warn_fn(message)
            return
        self._logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        if self._initialized and self._log_error_fn:
            self._log_error_fn(message)
            return
        self._logger.error(message)


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    library_level: str = "WARNING"
) -> logging.Logger:
    """
    Attach a stdout handler to the ``opcua_client`` logger.

    Args:
        level: Level name for the client logger
        json_format: Use JsonFormatter instead of the plain text format
        library_level: Level applied to the asyncua loggers

    Returns:
        The configured client logger
    """
    client_logger = logging.getLogger(LOGGER_NAME)
    client_logger.setLevel(level.upper())

    # Replace handlers installed by a previous call
    for handler in list(client_logger.handlers):
        if getattr(handler, "_opcua_client_handler", False):
            client_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler._opcua_client_handler = True
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '[%(levelname)s] %(asctime)s %(name)s - %(message)s',
            datefmt='%H:%M:%S'
        ))
    client_logger.addHandler(handler)

    set_library_level(library_level)

    return client_logger


def set_library_level(level: str) -> None:
    """Apply a level to the asyncua loggers."""
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(level.upper())


# Module-level convenience functions
def get_logger() -> OpcuaLogger:
    """Get the singleton logger instance."""
    return OpcuaLogger.get_instance()


def log_debug(message: str) -> None:
    get_logger().debug(message)


def log_info(message: str) -> None:
    """Log an informational message."""
    get_logger().info(message)


def log_warn(message: str) -> None:
    """Log a warning message."""
    get_logger().warn(message)


def log_error(message: str) -> None:
    """Log an error message."""
    get_logger().error(message)
