"""
Logger Module
-------------
Timestamped logging for the verification pipeline.
Console output by default; optional file logging for OCR errors,
rejected documents and verification decisions.
"""

import logging
import sys
from pathlib import Path

ROOT_LOGGER_NAME = "slip_verifier"
LOG_FILE_NAME = "slip_verifier.log"

CONSOLE_FORMAT = logging.Formatter(
    "%(asctime)s | %(levelname)-8s | %(message)s",
    datefmt="%H:%M:%S",
)
FILE_FORMAT = logging.Formatter(
    "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def get_logger(name=None):
    """
    Return a logger namespaced under the package root logger.

    Args:
        name (str): Module name, e.g. __name__. Names already under the
            package root are used as-is.

    Returns:
        logging.Logger
    """
    if not name or name == ROOT_LOGGER_NAME:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(level=logging.INFO, log_dir=None):
    """
    Configure handlers on the package root logger.

    Calling this again replaces the handlers installed by a previous call.

    Args:
        level (int): Console log level.
        log_dir (str | Path | None): If given, also write DEBUG-level logs
            to <log_dir>/slip_verifier.log.

    Returns:
        logging.Logger: The configured root package logger.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(CONSOLE_FORMAT)
    logger.addHandler(console_handler)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(FILE_FORMAT)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger

