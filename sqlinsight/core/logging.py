from loguru import logger
import sys

from sqlinsight.core.config import settings

# Remove default handler
logger.remove()

# Console handler
logger.add(
    sys.stdout,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level=settings.LOG_LEVEL,
    colorize=True
)

# Add file handler for errors
logger.add(
    "logs/sqlinsight_{time:YYYY-MM-DD}.log",
    rotation="1 day",
    retention="7 days",
    level="ERROR",
    delay=True,
    format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {extra[name]}:{function}:{line} - {message}"
)

logger.configure(extra={"name": "sqlinsight"})


def get_logger(name: str):
    return logger.bind(name=name)
