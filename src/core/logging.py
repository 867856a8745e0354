"""
Loguru setup shared by the API and the ingestion pipeline.

Log calls pass structured context as keyword arguments, e.g.
``logger.info("Appended ledger row", identifier=...)``. Those end up in
``record["extra"]`` and are rendered after the message.
"""

import sys
from loguru import logger
from .config import settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level> {extra}"
)

_configured = False


def setup_logging():
    """Configure loguru sinks once and return the logger."""
    global _configured
    if _configured:
        return logger

    logger.remove()
    logger.add(sys.stderr, level=settings.log_level.upper(), format=LOG_FORMAT)

    if settings.log_file:
        logger.add(
            settings.log_file,
            level=settings.log_level.upper(),
            format=LOG_FORMAT,
            rotation="10 MB",
            retention=5,
        )

    _configured = True
    return logger
