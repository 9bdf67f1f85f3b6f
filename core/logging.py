"""
Logging configuration
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from core.config import Settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# 10MB per file, 5 files kept
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


def setup_logging(settings: Settings, verbose: bool = False):
    """Configure application logging"""

    if verbose:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]

    if settings.LOG_DIR:
        log_dir = Path(settings.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)

        general = RotatingFileHandler(
            log_dir / "etl.log", maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT
        )
        general.setLevel(logging.INFO)

        errors = RotatingFileHandler(
            log_dir / "etl-error.log", maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT
        )
        errors.setLevel(logging.ERROR)

        handlers.extend([general, errors])

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True
    )

    # Reduce noise from SQLAlchemy and the HTTP client
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at {logging.getLevelName(log_level)} level")
