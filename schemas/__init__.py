"""
Pydantic schemas for configuration, validation and results.

Schemas:
    facts: Canonical fact records, loader output and upsert counts
    sources: Pipeline configuration (ETL settings, API and file sources,
        long/wide mapping modes)
    ckan: Response envelope of the remote datastore API
    runs: Run options, run-log entries and per-source summaries

Usage:
    from schemas.sources import load_etl_config, ApiSourceConfig
    from schemas.facts import FactRecordCreate, UpsertResult

Validation:
    Configuration is validated once at load time; per-record validation
    happens when a transformer builds FactRecordCreate instances.
"""

__all__ = [
    "FactRecordCreate",
    "LoadResult",
    "UpsertResult",
    "ValidationReport",
    "EtlConfig",
    "EtlSettings",
    "ApiSourceConfig",
    "FileSourceConfig",
    "LongMapping",
    "WideMapping",
    "load_etl_config",
    "CKANResponse",
    "RunOptions",
    "RunLogEntry",
    "SourceRunSummary",
    "PipelineReport",
]
