"""Logging setup for starch builds.

Modules log through ``get_logger("<component>")``. The CLI calls
:func:`configure_logging` once per invocation; build scripts that drive the
CLI repeatedly get a fresh set of handlers each time.
"""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "starch"

_CONSOLE_FORMAT = "[starch] %(levelname)s %(message)s"
_VERBOSE_CONSOLE_FORMAT = "[starch:%(component)s] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(component)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``starch.<name>``, or the package logger when ``name`` is empty."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


class _ComponentFilter(logging.Filter):
    """Expose the logger name without the ``starch.`` prefix as ``component``."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(f"{_LOGGER_NAME}."):
            name = name[len(_LOGGER_NAME) + 1 :]
        record.component = name
        return True


def resolve_level(*, verbose: bool = False, quiet: bool = False) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def configure_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Install console (and optional file) handlers on the starch logger.

    ``verbose`` wins over ``quiet``. The file sink always records at DEBUG so a
    quiet console build still leaves a full trace behind.
    """
    level = resolve_level(verbose=verbose, quiet=quiet)
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file is not None else level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    component = _ComponentFilter()
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.addFilter(component)
    stream_handler.setFormatter(
        logging.Formatter(_VERBOSE_CONSOLE_FORMAT if verbose else _CONSOLE_FORMAT)
    )
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.addFilter(component)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "get_logger", "resolve_level"]
