"""
Centralized logging configuration for the sdhe package.

Every module gets its logger from ``create_logger(__name__)``; stage
failures (import, store, publish) are reported through ``log_exception``
with hints matched to the kind of error.
"""

import os
import sys
from typing import Dict, List, Optional, Union

import colorlog

LOG_FORMAT = "%(log_color)s[%(levelname)s]%(reset)s %(blue)s[%(name)s]%(reset)s %(message)s"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

# Keyed by exception class name; the most specific class in the MRO wins
TROUBLESHOOTING_HINTS: Dict[str, List[str]] = {
    "CSVReadError": [
        "Check the file path and that it is readable",
        "Save the CSV as UTF-8 with a header row",
    ],
    "BatchUpsertError": [
        "Earlier batches were written; re-running the import is safe (upsert by id)",
        "Check the failing batch's indicator ids in the lines above",
    ],
    "StoreError": [
        "Verify DB_PATH points to a writable DuckDB file",
        "Make sure no other process holds the database lock",
    ],
    "PartialFailureError": [
        "Review the per-indicator failures listed above",
    ],
    "ClientError": [
        "Verify S3_BUCKET_NAME exists and the credentials can write to it",
        "If AWS_ROLE_ARN is set, check the role's trust policy",
    ],
    "PublishError": [
        "Verify S3_BUCKET_NAME and AWS credentials",
    ],
}

DEFAULT_HINTS = [
    "Check the uploaded CSV headers and values",
    "Review earlier log lines for the failing batch or object",
]


def create_logger(name: Optional[str] = None, log_level: Union[int, str, None] = None):
    """
    Create a color-coded console logger.

    :param name: Name of the logger (typically __name__)
    :param log_level: Logging level (default: LOG_LEVEL env var or INFO)
    :return: Configured logger instance
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    logger = colorlog.getLogger(name or "sdhe")
    logger.setLevel(log_level)
    logger.propagate = False

    # Modules are reloaded in tests; don't stack handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console_handler = colorlog.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(colorlog.ColoredFormatter(LOG_FORMAT, log_colors=LOG_COLORS))
    logger.addHandler(console_handler)

    return logger


def troubleshooting_hints(e: BaseException) -> List[str]:
    for cls in type(e).__mro__:
        if cls.__name__ in TROUBLESHOOTING_HINTS:
            return TROUBLESHOOTING_HINTS[cls.__name__]
    return DEFAULT_HINTS


def log_exception(logger, e, context=None):
    """
    Log a stage failure with its context and matching hints.

    :param logger: Logger instance
    :param e: Exception object
    :param context: Optional mapping describing where it failed
    """
    logger.critical(f"{type(e).__name__}: {e}")

    if context:
        logger.critical(f"Context: {context}")

    cause = e.__cause__ if e.__cause__ is not None else e
    logger.critical("Troubleshooting:")
    for number, hint in enumerate(troubleshooting_hints(cause), start=1):
        logger.critical(f"  {number}. {hint}")
