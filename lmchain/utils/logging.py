"""
Centralized logging configuration for the lmchain package.

Units, pipelines and the factory functions report through the
`LoggerBase` interface defined here, which delegates to Python's
logging module. Functions and unit constructors take an optional
`logger` argument, so that the caller may choose where the messages
go:

    ```python
    from lmchain.utils.logging import (
        ConsoleLogger,
        FileLogger,
        LoglistLogger,
    )

    invoker = ModelInvoker(model, logger=ConsoleLogger(__name__))

    # collect messages for later inspection, e.g. in tests
    logger = LoglistLogger()
    pipeline = Pipeline(template, invoker, logger=logger)
    await pipeline.ainvoke({'product': "socks"})
    print(logger.get_logs())
    ```

Pipelines report their state transitions at debug level; parallel
groups and model invokers report failures at error level.
"""

import logging
import sys
from abc import ABC, abstractmethod
from pathlib import Path

LOG_FORMAT = '%(levelname)s - %(message)s'
FILE_LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class LoggerBase(ABC):
    """
    Abstract interface for logging functionality.
    """

    @abstractmethod
    def set_level(self, level: int) -> None:
        """Set the logging level for the logger."""
        pass

    @abstractmethod
    def get_level(self) -> int:
        """Get the current logging level"""
        pass

    @abstractmethod
    def debug(self, msg: str) -> None:
        """Log a debug message."""
        pass

    @abstractmethod
    def info(self, msg: str) -> None:
        """Log an informational message."""
        pass

    @abstractmethod
    def warning(self, msg: str) -> None:
        """Log a warning message."""
        pass

    @abstractmethod
    def error(self, msg: str) -> None:
        """Log an error message."""
        pass


class _DelegateLogger(LoggerBase):
    """Forwards to a logging.Logger delegate."""

    logger: logging.Logger

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)

    def get_level(self) -> int:
        return self.logger.level

    def debug(self, msg: str) -> None:
        self.logger.debug(msg)

    def info(self, msg: str) -> None:
        self.logger.info(msg)

    def warning(self, msg: str) -> None:
        self.logger.warning(msg)

    def error(self, msg: str) -> None:
        self.logger.error(msg)


class ConsoleLogger(_DelegateLogger):
    """
    A console logger implementation that uses logging.Logger as a
    delegate. Logs messages to stdout.
    """

    def __init__(
        self, name: str | None = None, level: int = logging.INFO
    ) -> None:
        """
        Initialize the ConsoleLogger with a specific logger name,
        typically __name__ to use the module name
        """
        self.logger = logging.getLogger(name or None)
        self.logger.setLevel(level)

        # Ensure we have a console handler if none exists
        if not self.logger.hasHandlers():
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            self.logger.addHandler(handler)


class FileLogger(_DelegateLogger):
    """
    A file logger implementation that uses logging.Logger as a
    delegate. Logs messages to a specified file.
    """

    def __init__(
        self,
        name: str = "",
        log_file: str | Path = "lmchain.log",
        level: int = logging.INFO,
    ) -> None:
        """
        Args:
            name: The name of the logger, typically __name__ to use
                the module name
            log_file: Path to the log file where messages will be
                written
            level: the initial logging level
        """
        self.logger = logging.getLogger(f"{name}_file")
        self.logger.setLevel(level)

        # Clear any existing handlers to avoid duplicates
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)

        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(
            logging.Formatter(FILE_LOG_FORMAT, DATE_FORMAT)
        )
        self.logger.addHandler(handler)

        # Prevent propagation to avoid duplicate logs
        self.logger.propagate = False

    def close(self) -> None:
        """Release the file handle."""
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)


class LoglistLogger(LoggerBase):
    """
    Maintains a list of logged messages that can be inspected by the
    object creator. Messages below the set level are discarded.
    """

    def __init__(self, level: int = logging.DEBUG) -> None:
        self.level = level
        self.logs: list[tuple[int, str]] = []

    def set_level(self, level: int) -> None:
        self.level = level

    def get_level(self) -> int:
        return self.level

    def _log(self, level: int, msg: str) -> None:
        if level >= self.level:
            self.logs.append((level, msg))

    def debug(self, msg: str) -> None:
        self._log(logging.DEBUG, msg)

    def info(self, msg: str) -> None:
        self._log(logging.INFO, msg)

    def warning(self, msg: str) -> None:
        self._log(logging.WARNING, msg)

    def error(self, msg: str) -> None:
        self._log(logging.ERROR, msg)

    def get_logs(self, level: int = logging.DEBUG) -> list[str]:
        """
        Returns a list of strings with the log messages at or above
        level, prefixed by the level name, e.g. "ERROR - ...".
        """
        return [
            f"{logging.getLevelName(lev)} - {msg}"
            for lev, msg in self.logs
            if lev >= level
        ]

    def count_logs(self, level: int = logging.DEBUG) -> int:
        """The number of recorded logs at or above level."""
        return len(self.get_logs(level))

    def clear_logs(self) -> None:
        """Clear the logs from the cache"""
        self.logs.clear()


def get_logger(name: str) -> LoggerBase:
    """
    Get a console logger with the specified name.

    Args:
        name: The name of the logger, typically __name__ to use the
            module name

    Returns:
        A configured logger instance
    """
    return ConsoleLogger(name)


def set_log_level(level: int) -> None:
    """
    Set the log level of the package loggers.

    Args:
        level: The logging level (e.g., logging.DEBUG, logging.INFO)
    """
    logging.getLogger("lmchain").setLevel(level)
