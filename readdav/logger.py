"""
Logging setup for readdav.

Everything logs through the root logger. Request workers, the cache worker
and the cache pruner are told apart by thread name, which the format
carries. One line per answered request goes to ``readdav.access`` at INFO,
so ``--verbose`` turns the access log on.
"""

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import LogConfig

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(threadName)s - %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
ACCESS_LOGGER = "readdav.access"

# third-party loggers are never more verbose than this
LIBRARY_FLOORS = {
    "cheroot": logging.WARNING,
    "wsgidav": logging.WARNING,
}


def effective_level(level: str, verbose: bool = False, debug: bool = False) -> str:
    """
    Combine a configured level name with the command line flags.

    ``debug`` selects DEBUG and wins over ``verbose``, which selects INFO.

    Raises:
        ValueError: If ``level`` is not a known level name.
    """
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    name = level.upper()
    if name not in LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level}")
    return name


def _handlers(config: "LogConfig") -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if config.file:
        log_path = Path(config.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, mode="a", encoding="utf-8"))
    if config.console:
        handlers.append(logging.StreamHandler(sys.stderr))
    return handlers


def setup_logging(config: "LogConfig") -> None:
    """
    Install the readdav handlers on the root logger.

    Handlers from an earlier call are replaced. An unknown level name falls
    back to WARNING.
    """
    level = getattr(logging, config.level.upper(), logging.WARNING)
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    for handler in _handlers(config):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    # cheroot reports every dropped connection through its own logger
    for name, floor in LIBRARY_FLOORS.items():
        logging.getLogger(name).setLevel(max(level, floor))
