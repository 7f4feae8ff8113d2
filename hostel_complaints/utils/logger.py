"""
Logging configuration
"""
import logging
import sys
from hostel_complaints.config import get_settings

settings = get_settings()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _level() -> int:
    return logging.DEBUG if settings.DEBUG else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """Module logger writing to stdout; does not double-log through the root logger"""
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    logger.setLevel(_level())
    return logger


def configure_logging() -> None:
    """Root logger setup for the server process (uvicorn, sqlalchemy, ...)"""
    logging.basicConfig(level=_level(), format=LOG_FORMAT, stream=sys.stdout)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.DEBUG else logging.WARNING
    )
