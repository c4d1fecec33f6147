import sys
from loguru import logger

# Console-only bootstrap; logging_util.configure_logger replaces it once the config is readable
logger.remove()
logger.add(
    sink=sys.stdout,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | {level.icon} {level.name:<8} | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | {message}",
    level="DEBUG"
)
