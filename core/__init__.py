"""
Core utilities and configuration for the fact ETL pipeline.

Modules:
    config: Process settings from environment variables / .env
    database: Engine and session factory, dialect-aware upsert inserts
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration

Usage:
    from core.config import Settings
    from core.database import create_session_factory
    from core.logging import setup_logging

Example:
    settings = Settings()
    setup_logging(settings)

    engine, session_factory = create_session_factory(settings)
    async with session_factory() as session:
        ...
"""

__all__ = [
    "Settings",
    "create_session_factory",
    "upsert_insert",
    "setup_logging",
    # Exceptions
    "ETLException",
    "ConfigurationError",
    "ExtractionError",
    "APIExtractionError",
    "FileExtractionError",
    "TransformationError",
    "RecordTransformError",
    "LoadError",
    "DatabaseError",
    "UpsertError",
    "CheckpointError",
    "RetryableError",
    "NonRetryableError",
    "NetworkError",
    "RateLimitError",
    "DatabaseConnectionError",
    "AuthenticationError",
    "ResourceNotFoundError",
]
