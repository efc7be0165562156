# insegnami/core/logging.py
"""Logging configuration."""
import logging
import sys

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

def setup_logging(level: str = None):
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # SQL echo is noisy outside development
    if settings.environment != 'development':
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
