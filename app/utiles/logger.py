import logging
import os
from logging.handlers import RotatingFileHandler  # For controlling the log file size and rotating

LOG_FILE = os.getenv("LOG_FILE", "fleet_management_fastapi.log")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - %(message)s"


def get_logger(name):
    """
    Get a configured logger instance.
    Prevents duplicate handlers and sets a formatter for both file and console.
    LOG_FILE / LOG_LEVEL come from the environment so they are usable before settings load.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT)

    # File handler with rotation; opened lazily on the first record
    file_handler = RotatingFileHandler(
        LOG_FILE,
        maxBytes=10_000_000,  # ~10MB
        backupCount=10,
        encoding="utf-8",
        delay=True,
    )
    file_handler.setFormatter(formatter)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(stream_handler)
    logger.propagate = False
    return logger
