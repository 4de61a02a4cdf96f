# pyright: reportUnusedImport=false
# flake8: noqa

# default logger initialized from here
from .logging import LoggerBase
from .logging import ConsoleLogger, LoglistLogger, get_logger

logger: LoggerBase = ConsoleLogger("pipeloop")
