"""
Loguru sink setup shared by the service entry points
"""

import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[stage]}</cyan> | <level>{message}</level>"
)


def configure_logging(level: str = "INFO", stage: str = "ticketing"):
    """Replace the default sink with a formatted stderr sink tagged with the stage name"""
    logger.remove()
    logger.configure(extra={"stage": stage})
    logger.add(sys.stderr, format=LOG_FORMAT, level=level.upper())
