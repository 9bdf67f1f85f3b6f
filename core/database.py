"""
Database session management with SQLAlchemy async
"""

from typing import Tuple

from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from core.config import Settings
from core.exceptions import DatabaseError
import logging

logger = logging.getLogger(__name__)

# Dialects that support INSERT ... ON CONFLICT DO UPDATE
UPSERT_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


def create_session_factory(settings: Settings) -> Tuple[AsyncEngine, async_sessionmaker]:
    """Create the engine and session factory for the configured database"""
    engine = create_async_engine(
        settings.DATABASE_URL,
        echo=False,
        poolclass=NullPool,
    )

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )
    return engine, session_factory


def upsert_insert(session: AsyncSession, model):
    """
    Build a dialect-specific INSERT for ``model`` that supports
    ``on_conflict_do_update``.
    """
    dialect = session.get_bind().dialect.name
    insert = UPSERT_INSERTS.get(dialect)
    if insert is None:
        raise DatabaseError(
            f"Upsert is not supported on dialect '{dialect}'",
            context={"dialect": dialect, "table_name": model.__tablename__}
        )
    return insert(model)
