"""
SQLAlchemy ORM models for database tables.

Models:
    base: Base declarative class and shared enums (SourceKind, RunStatus)
    fact: Canonical fact records, unique by fingerprint
    etl_run: Append-only run log
    checkpoint: Resume offsets per source

Usage:
    from models.fact import FactRecord
    from models.checkpoint import EtlCheckpoint
    from models.etl_run import EtlRunLog
    from models.base import Base, SourceKind, RunStatus

Database Schema:
    PostgreSQL is the production target (JSONB payloads, asyncpg driver);
    the column types degrade to SQLite equivalents for local runs and tests.
"""

__all__ = [
    "Base",
    "SourceKind",
    "RunStatus",
    "FactRecord",
    "EtlRunLog",
    "EtlCheckpoint",
]
