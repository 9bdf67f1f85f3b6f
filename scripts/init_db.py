"""
Create the fact, run-log and checkpoint tables
"""

import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import Settings
from core.database import create_session_factory
from core.logging import setup_logging
from models.base import Base
# Import all models to ensure they are registered
from models.fact import FactRecord
from models.etl_run import EtlRunLog
from models.checkpoint import EtlCheckpoint

logger = logging.getLogger(__name__)


async def init_database(settings: Settings):
    logger.info("Connecting to database...")
    engine, _ = create_session_factory(settings)

    try:
        async with engine.begin() as conn:
            logger.info("Creating tables...")
            await conn.run_sync(Base.metadata.create_all)
            logger.info(
                "Tables created successfully: "
                f"{FactRecord.__tablename__}, {EtlRunLog.__tablename__}, "
                f"{EtlCheckpoint.__tablename__}"
            )
    finally:
        await engine.dispose()


if __name__ == "__main__":
    settings = Settings()
    setup_logging(settings)
    asyncio.run(init_database(settings))
