import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
ROOT_LOGGER = "boxblur"


def setup_logging(level: Optional[str] = None) -> None:
    """
    Attaches a stderr handler to the package logger. Safe to call repeatedly.
    """
    from boxblur.kernel.system.config import APP_CONFIG

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel((level or APP_CONFIG.log_level).upper())

    if not any(getattr(h, "_boxblur_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._boxblur_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
