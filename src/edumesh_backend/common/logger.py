'''
Application-wide logger, imported everywhere as `log`.
'''
import logging
import sys

from .config import settings

LOGGER_NAME = 'edumesh-backend'
LOG_FORMAT = '%(asctime)s - %(module)s - %(levelname)s - %(message)s'

def setup_logger(level: str = settings.LOG_LEVEL) -> logging.Logger:
    """
    Builds the `edumesh-backend` logger: one stdout handler, level from settings.
    Repeated calls reuse the existing handler.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())
    logger.propagate = False

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    # SQL echo goes through DATABASE_ECHO, not through our level
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

    return logger

log = setup_logger()
