"""
Logging interface used across the package.

Components that report conditions which are not errors (a stream
request downgraded to a single response, the call budget exhausted, a
local server not reachable) take a `logger` argument implementing
`LoggerBase`. The default writes to the console through Python's
logging module; `LoglistLogger` keeps the entries in memory so that
callers and tests can inspect what was reported.

Usage:
    ```python
    from pipeloop.utils.logging import ConsoleLogger, LoglistLogger

    pipe = Pipe(options, logger=ConsoleLogger(__name__))

    # or collect the warnings of a run
    logger = LoglistLogger()
    pipe = Pipe(options, logger=logger)
    await pipe.run(run_options)
    warnings = logger.get_logs(level=1)
    ```
"""

import logging
import sys
from abc import ABC, abstractmethod

# filter values of LoglistLogger.get_logs -> minimum level reported
_LOG_FILTERS: dict[int, int] = {
    0: logging.NOTSET,
    1: logging.WARNING,
    2: logging.ERROR,
}


class LoggerBase(ABC):
    """
    Abstract interface for logging functionality. Implementations
    provide `log`; the level methods dispatch to it.
    """

    @abstractmethod
    def set_level(self, level: int) -> None:
        """Set the logging level for the logger."""

    @abstractmethod
    def get_level(self) -> int:
        """Get the current logging level"""

    @abstractmethod
    def log(self, level: int, msg: str) -> None:
        """Log a message at a level of the logging module."""

    def debug(self, msg: str) -> None:
        self.log(logging.DEBUG, msg)

    def info(self, msg: str) -> None:
        self.log(logging.INFO, msg)

    def warning(self, msg: str) -> None:
        self.log(logging.WARNING, msg)

    def error(self, msg: str) -> None:
        self.log(logging.ERROR, msg)


class ConsoleLogger(LoggerBase):
    """
    A console logger that uses logging.Logger as a delegate. A stderr
    handler is installed only if the application has not configured
    logging for this logger or its parents.
    """

    def __init__(self, name: str | None = None) -> None:
        self.logger = logging.getLogger(name or "pipeloop")

        if not self.logger.hasHandlers():
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(
                logging.Formatter('%(levelname)s - %(name)s - %(message)s')
            )
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)

    def get_level(self) -> int:
        return self.logger.getEffectiveLevel()

    def log(self, level: int, msg: str) -> None:
        self.logger.log(level, msg)


class LoglistLogger(LoggerBase):
    """
    Records logged messages as (level, message) pairs for inspection
    by the object creator. Messages below the logger level are
    dropped, so that debug messages are only kept at logging.DEBUG.
    """

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level
        self.records: list[tuple[int, str]] = []

    def set_level(self, level: int) -> None:
        self.level = level

    def get_level(self) -> int:
        return self.level

    def log(self, level: int, msg: str) -> None:
        if level >= self.level:
            self.records.append((level, msg))

    def get_logs(self, level: int = 0) -> list[str]:
        """
        The recorded messages, prefixed by their level name.

        Args:
           level: a filter on the logs. Possible values:
                0 or less: returns all messages
                1: omit debug and info
                2 or more: only errors
        """
        threshold = _LOG_FILTERS[min(max(level, 0), 2)]
        return [
            f"{logging.getLevelName(lvl)} - {msg}"
            for lvl, msg in self.records
            if lvl >= threshold
        ]

    def count_logs(self, level: int = 0) -> int:
        """The number of recorded logs passing the filter."""
        return len(self.get_logs(level))

    def clear_logs(self) -> None:
        self.records.clear()


def get_logger(name: str) -> LoggerBase:
    """
    Get a console logger with the specified name, typically __name__
    to use the module name.
    """
    return ConsoleLogger(name)
