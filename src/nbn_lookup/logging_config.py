"""
Logging setup for the lookup service, API and scripts.

Everything logs under the ``nbn_lookup`` namespace. The console handler
writes to stderr so the lookup script can print its summary on stdout.
"""

import logging
import sys
from pathlib import Path

ROOT_LOGGER = "nbn_lookup"

# HTTP client and ORM internals log every request/statement at INFO/DEBUG
NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "uvicorn.access")

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"

_HANDLER_MARK = "_nbn_lookup_handler"


def _mark(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _HANDLER_MARK, True)
    return handler


def setup_logging(level: str | None = None, log_file: str | None = None) -> logging.Logger:
    """
    Configure the ``nbn_lookup`` logger.

    Safe to call more than once (the API lifespan and the scripts both call
    it): handlers installed by an earlier call are closed and replaced.

    Args:
        level: Console level name. Defaults to LOG_LEVEL from settings.
        log_file: Detailed log file, always at DEBUG. Defaults to LOG_FILE.

    Returns:
        The configured package logger.
    """
    if level is None or log_file is None:
        from nbn_lookup.config import settings
        level = level or settings.logging.level
        log_file = log_file or settings.logging.file

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    package_logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(package_logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            package_logger.removeHandler(handler)
            handler.close()

    file_handler = _mark(logging.FileHandler(log_file, encoding="utf-8"))
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    console_handler = _mark(logging.StreamHandler(sys.stderr))
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))

    package_logger.setLevel(logging.DEBUG)
    package_logger.addHandler(file_handler)
    package_logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    package_logger.debug("Logging configured (console=%s, file=%s)", level.upper(), log_file)
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """
    Logger for a module, placed under the ``nbn_lookup`` namespace.

    Module ``__name__`` values inside the package are used as-is; anything
    else (scripts, ``__main__``) is prefixed.

        logger = get_logger(__name__)
        logger.info("Fetched %s", url)
    """
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
