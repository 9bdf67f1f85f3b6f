"""
ETL pipeline components for fact ingestion.

Modules:
    base: Abstract base class shared by API and file sources
    checkpoint: Resume offsets and the append-only run log
    runner: Orchestrator that selects sources and drives load/upsert
    cli: Command-line entry point (etl-run)

Subpackages:
    extractors: CKAN datastore and CSV/Excel loaders
    transformers: Field lookup, locale-tolerant parsing, fingerprints
    loaders: Chunked fingerprint upserts into the fact table

Architecture:
    Each source goes through the same phases:

    1. Load - page through the API or read the file, mapping raw rows
       to canonical fact records (bad rows are skipped and counted)
    2. Filter - optional year floor and record limit
    3. Store - chunked upsert keyed by fingerprint
    4. Record - checkpoint advanced and run log completed

    A failure in one source is logged as a failed run and does not stop
    the remaining sources unless fail-fast is requested.

Usage:
    from ingestion.runner import PipelineRunner
    from schemas.runs import RunOptions

    runner = PipelineRunner(session, etl_config)
    report = await runner.run(RunOptions(mode="api", since=2019))
"""

__all__ = [
    "FactSource",
    "CheckpointManager",
    "PipelineRunner",
    "CKANApiExtractor",
    "FileExtractor",
    "FactTransformer",
    "FactLoader",
]
