import logging
import os
from typing import Optional

LOG_LEVEL_ENV = "TRANSFER_CLASSIFIER_LOG_LEVEL"


def default_level() -> int:
    """Resolve the default logging level from the environment (INFO if unset or unknown)."""
    level = logging.getLevelName(os.environ.get(LOG_LEVEL_ENV, "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """Set up a logger with the specified name and logging level."""
    if level is None:
        level = default_level()

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Create console handler and set level
    ch = logging.StreamHandler()
    ch.setLevel(level)

    # Create formatter
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    ch.setFormatter(formatter)

    # Add the handler to the logger
    if not logger.hasHandlers():
        logger.addHandler(ch)

    return logger


def set_level(level: int, prefix: str = "transfer_classifier_pipeline") -> None:
    """Change the level of every pipeline logger (and its handlers) already created."""
    for name, candidate in logging.Logger.manager.loggerDict.items():
        if not name.startswith(prefix) or not isinstance(candidate, logging.Logger):
            continue
        candidate.setLevel(level)
        for handler in candidate.handlers:
            handler.setLevel(level)
