"""
Logging configuration for reviewflow entry points.
"""

import logging
import os

LOGGER_NAME = "reviewflow"


def setup_logging(
    log_file: str | None = None,
    verbose: bool = False,
    level: str = "INFO",
) -> logging.Logger:
    """
    Configure dual-handler logging (console + file).

    Handlers are attached to the package logger, so every module logger under
    reviewflow.* inherits them.

    Args:
        log_file: Path to log file (None for no file logging)
        verbose: Enable DEBUG level on console, overriding level
        level: Console level name when not verbose

    Returns:
        Configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    # Repeated calls (e.g. one per CLI invocation in tests) replace handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else level.upper())
    console_handler.setFormatter(
        logging.Formatter("%(levelname)-8s | %(name)s | %(message)s")
    )
    logger.addHandler(console_handler)

    # File handler (if path provided)
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)

    return logger
