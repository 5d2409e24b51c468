import logging
import sys
from typing import Optional, Union

# Package root logger ("ndcore", or "src.ndcore" when run from a checkout).
LOGGER_NAME = __name__.rpartition(".infrastructure")[0]


def configure_logging(level: Optional[Union[int, str]] = None) -> logging.Logger:
    """
    Configure the package logger.

    Sets the level of the package root logger (defaulting to the ``log_level``
    setting), uses the format "timestamp - logger name - level - message" for
    records, and attaches a StreamHandler that writes logs to stdout. Calling
    it again only updates the level.
    """
    if level is None:
        from .config._settings import get_settings

        level = get_settings().log_level
    if isinstance(level, str):
        level = level.upper()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    if not any(getattr(h, "_ndcore_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        handler._ndcore_handler = True
        logger.addHandler(handler)
    return logger
