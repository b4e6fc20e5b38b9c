"""Structured JSON logging configuration."""

import logging
import sys
from pythonjsonlogger.json import JsonFormatter


def setup_logger(name: str = "winhealth", level: str = "INFO") -> logging.Logger:
    """
    Configure structured JSON logging.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers to avoid duplicates
    logger.handlers = []

    # Logs go to stderr; stdout carries the console summary
    handler = logging.StreamHandler(sys.stderr)
    formatter = JsonFormatter(
        '%(asctime)s %(name)s %(levelname)s %(message)s',
        timestamp=True
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Don't propagate to root logger
    logger.propagate = False

    return logger
