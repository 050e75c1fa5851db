import logging
import sys

from app.core.config import settings

def setup_logger():
    logger = logging.getLogger("MemoryFinder")
    logger.setLevel(settings.LOG_LEVEL)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        logger.addHandler(handler)
    return logger

logger = setup_logger()
