# log.py
# SPDX-License-Identifier: MIT
"""Logging setup for the archiver and the search-engine client beneath it.

The package logger carries a NullHandler, so nothing is printed until the
host application (or the ``esarchiver`` CLI) configures logging.
"""

from __future__ import annotations

import logging
import sys

__all__ = [
    "PACKAGE_LOGGER_NAME",
    "CLIENT_LOGGER_NAMES",
    "get_logger",
    "configure_logging",
    "set_client_log_level",
]

PACKAGE_LOGGER_NAME = "esarchiver"
# The transport logs one INFO line per HTTP request, i.e. per bulk batch.
CLIENT_LOGGER_NAMES = ("elastic_transport", "elasticsearch")

logging.getLogger(PACKAGE_LOGGER_NAME).addHandler(logging.NullHandler())


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``name``'s logger, or the package logger when omitted."""
    return logging.getLogger(name or PACKAGE_LOGGER_NAME)


def _level_number(level: int | str) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


def set_client_log_level(level: int | str) -> None:
    """Set the level of the Elasticsearch client loggers."""
    number = _level_number(level)
    for name in CLIENT_LOGGER_NAMES:
        logging.getLogger(name).setLevel(number)


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream=None,
    fmt: str | None = None,
    datefmt: str | None = None,
    propagate: bool | None = None,
    logger_name: str = PACKAGE_LOGGER_NAME,
    client_level: int | str | None = None,
) -> logging.Logger:
    """Attach one stream handler to an archiver logger and set its level.

    Args:
        level (int | str): Level or level name for the archiver logger.
        stream (IO[str] | None): Target stream; defaults to sys.stderr.
        fmt (str | None): Record format. Defaults to a timestamped format.
        datefmt (str | None): Date format for the handler.
        propagate (bool | None): Whether records also reach ancestor loggers.
            None means True, which keeps pytest's caplog working.
        logger_name (str): Logger to configure.
        client_level (int | str | None): Level for the Elasticsearch client
            loggers. When None they log at WARNING, or at DEBUG when the
            archiver itself logs at DEBUG.

    Returns:
        logging.Logger: The configured logger.
    """
    logger = get_logger(logger_name or PACKAGE_LOGGER_NAME)
    number = _level_number(level)
    logger.setLevel(number)
    logger.propagate = True if propagate is None else bool(propagate)

    if client_level is None:
        client_level = logging.DEBUG if number <= logging.DEBUG else logging.WARNING
    set_client_log_level(client_level)

    if stream is None:
        stream = sys.stderr
    existing = [h for h in logger.handlers if type(h) is logging.StreamHandler]
    if existing:
        # Reuse the handler; a stream closed by a previous run is swapped out.
        for handler in existing:
            if getattr(handler.stream, "closed", False):
                handler.stream = stream
        return logger

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        logging.Formatter(fmt=fmt or "%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt=datefmt)
    )
    logger.addHandler(handler)
    return logger
