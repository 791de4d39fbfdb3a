import os
import sys
from pathlib import Path

from loguru import logger

log_dir = Path(os.getenv("GRABBER_LOG_DIR", "logs"))
log_file = log_dir / "grabber_{time}.log"

logger.remove()
logger.add(
    sys.stderr,
    level=os.getenv("GRABBER_LOG_LEVEL", "INFO"),
    format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
)
logger.add(
    log_file,
    rotation="256 MB",  # one file per 256 MB
    retention="10 days",  # old runs are removed after ten days
    compression="zip",
    encoding="utf-8",
    level="DEBUG",
)
