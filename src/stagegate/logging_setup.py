"""Logging configuration for stagegate."""

import logging
import os


def setup_logging(
    logger_name: str = "stagegate",
    log_file: str | None = None,
    verbose: bool = False,
    child_loggers: list[str] | None = None,
) -> logging.Logger:
    """
    Configure dual-handler logging (console + file).

    Every stagegate module logs under the ``stagegate`` namespace, so
    configuring that logger covers the whole engine.

    Args:
        logger_name: Name for the logger (default: the package namespace)
        log_file: Path to log file (None for no file logging)
        verbose: Enable DEBUG level on console (default INFO)
        child_loggers: Additional loggers to configure with same handlers

    Returns:
        Configured logger instance
    """
    # Console handler (shared)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(
        logging.Formatter("%(levelname)-8s | %(name)s | %(message)s")
    )

    # File handler (shared, if path provided)
    file_handler = None
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="w")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(threadName)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    for name in [logger_name, *(child_loggers or [])]:
        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG)
        logger.addHandler(console_handler)
        if file_handler:
            logger.addHandler(file_handler)

    return logging.getLogger(logger_name)
