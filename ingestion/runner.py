# ============================================================================
# File: ingestion/runner.py
# Description: Source orchestration: load, filter, upsert, checkpoint, log
# ============================================================================
"""
Pipeline Runner - processes configured sources one after another.

Per source:
1. Run log "started"
2. Resume offset (checkpoints enabled)
3. Load canonical records (API pages or file rows)
4. Caller-side filters: year floor, record limit
5. Dry run stops here
6. Chunked upsert; any failed chunk fails the run
7. Checkpoint advanced unless the limit cut the batch, run log "completed"

A source failure is logged as a "failed" run, re-raised from the
per-source method, and collected by run() which moves on to the next
source unless fail_fast is set.
"""

from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

import httpx
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ingestion.base import FactSource
from ingestion.checkpoint import CheckpointManager
from ingestion.extractors.api_extractor import CKANApiExtractor
from ingestion.extractors.file_extractor import FileExtractor
from ingestion.loaders.fact_loader import FactLoader
from models.base import RunStatus, SourceKind
from schemas.facts import FactRecordCreate
from schemas.runs import (
    PipelineReport,
    RunLogEntry,
    RunOptions,
    SourceFailure,
    SourceRunSummary,
)
from schemas.sources import ApiSourceConfig, EtlConfig, FileSourceConfig
from core.exceptions import (
    ConfigurationError,
    DatabaseConnectionError,
    ETLException,
    LoadError,
)

logger = logging.getLogger(__name__)

SourceConfig = Union[ApiSourceConfig, FileSourceConfig]


class PipelineRunner:
    """
    Orchestrator for API and file sources.

    Responsibilities:
    - Select sources by mode, category or single-source id
    - Apply year floor, record limit and dry run
    - Advance checkpoints only after a fully stored batch
    - Record every run in the run log
    """

    def __init__(
        self,
        db_session: AsyncSession,
        config: EtlConfig,
        base_dir: Optional[Path] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.db = db_session
        self.config = config
        self.settings = config.settings
        self.base_dir = base_dir
        self.transport = transport

        self.loader = FactLoader(db_session, chunk_size=self.settings.chunk_size)
        self.checkpoints = CheckpointManager(db_session)

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    async def run(self, options: RunOptions) -> PipelineReport:
        """
        Run every source selected by ``options``.

        Raises:
            DatabaseConnectionError: The store did not answer SELECT 1
            ConfigurationError: Single mode without a match
            ETLException: First source failure when fail_fast is set
        """
        logger.info(f"Starting ETL run: {options.model_dump_json()}")

        if not await self.loader.test_connection():
            raise DatabaseConnectionError("Database connection test failed")
        logger.info("Database connection verified")

        report = PipelineReport()

        for source in self.select_sources(options):
            try:
                summary = await self.process_source(source, options)
                report.summaries.append(summary)
            except ETLException as e:
                report.failures.append(self._failure(source, e))
                if options.fail_fast:
                    raise
            except Exception as e:
                logger.exception(f"Unexpected error processing {self._reference(source)}")
                report.failures.append(self._failure(source, e))
                if options.fail_fast:
                    raise

        await self.show_stats()

        logger.info(
            f"ETL run finished: {len(report.summaries)} succeeded, "
            f"{len(report.failures)} failed"
        )
        return report

    def select_sources(self, options: RunOptions) -> List[SourceConfig]:
        """Sources for this run, API sources first"""
        api_sources = self.config.sources
        file_sources = self.config.file_sources

        if options.mode == "single":
            return [self._find_single(options.source_id)]

        selected: List[SourceConfig] = []
        if options.mode in ("all", "api"):
            selected.extend(self._filter_category(api_sources, options.only))
        if options.mode in ("all", "file", "csv"):
            if not file_sources:
                logger.info("No file sources configured")
            selected.extend(self._filter_category(file_sources, options.only))
        return selected

    def _filter_category(
        self,
        sources: Iterable[SourceConfig],
        only: Optional[str]
    ) -> List[SourceConfig]:
        selected = []
        for source in sources:
            if only and source.category != only:
                logger.info(f"Skipping {source.category} (not in --only filter)")
                continue
            selected.append(source)
        return selected

    def _find_single(self, source_id: Optional[str]) -> SourceConfig:
        if not source_id:
            raise ConfigurationError("--source-id is required for single mode")

        for source in self.config.sources:
            if source_id in (source.resource_id, source.category):
                return source

        for source in self.config.file_sources:
            if source_id in (source.category, source.file_name):
                return source

        raise ConfigurationError(
            f"Source not found: {source_id}",
            context={"source_id": source_id}
        )

    async def process_source(self, source: SourceConfig, options: RunOptions) -> SourceRunSummary:
        if isinstance(source, ApiSourceConfig):
            return await self.process_api_source(source, options)
        return await self.process_file_source(source, options)

    # ------------------------------------------------------------------
    # Per-source runs
    # ------------------------------------------------------------------

    async def process_api_source(
        self,
        source: ApiSourceConfig,
        options: RunOptions
    ) -> SourceRunSummary:
        logger.info(f"Processing API source: {source.category}")
        extractor = CKANApiExtractor(source, self.settings, transport=self.transport)
        return await self._process(extractor, options, resumable=True)

    async def process_file_source(
        self,
        source: FileSourceConfig,
        options: RunOptions
    ) -> SourceRunSummary:
        logger.info(f"Processing file source: {source.category}")
        extractor = FileExtractor(source, base_dir=self.base_dir)

        validation = extractor.validate()
        if not validation.valid:
            error = ConfigurationError(
                f"File validation failed: {', '.join(validation.errors)}",
                context={"file_path": source.file_path}
            )
            logger.error(f"Failed to process file source {source.file_name}: {error.message}")

            if not options.dry_run:
                started = RunLogEntry(
                    source_kind=SourceKind.FILE,
                    source_reference=source.file_name,
                    category=source.category,
                    status=RunStatus.STARTED
                )
                await self.checkpoints.log_run(started)
                await self.checkpoints.log_run(started.model_copy(update={
                    "status": RunStatus.FAILED,
                    "error_message": error.message
                }))
            raise error

        return await self._process(extractor, options, resumable=source.resumable)

    async def _process(
        self,
        extractor: FactSource,
        options: RunOptions,
        resumable: bool
    ) -> SourceRunSummary:
        log_entry = RunLogEntry(
            source_kind=extractor.source_kind,
            source_reference=extractor.source_reference,
            category=extractor.category,
            status=RunStatus.STARTED
        )
        use_checkpoint = resumable and self.settings.enable_checkpoints

        summary = SourceRunSummary(
            source_kind=extractor.source_kind,
            source_reference=extractor.source_reference,
            category=extractor.category
        )

        try:
            if not options.dry_run:
                # Best-effort: a lost run-log row never stops the load
                await self.checkpoints.log_run(log_entry)

            start_offset = 0
            if use_checkpoint:
                start_offset = await self.checkpoints.get_checkpoint(
                    extractor.source_kind, extractor.source_reference
                )
                if start_offset > 0:
                    logger.info(f"Resuming from offset {start_offset}")

            result = await extractor.load(start_offset)
            for warning in result.warnings:
                logger.warning(warning)

            summary.start_offset = result.start_offset
            summary.next_offset = result.next_offset
            summary.records_fetched = len(result.records)
            summary.rows_failed = result.rows_failed

            records, truncated = self.apply_filters(result.records, options)
            summary.records_selected = len(records)

            if options.dry_run:
                logger.info(f"DRY RUN: Would process {len(records)} records")
                summary.status = "dry_run"
                return summary

            if not records:
                logger.info(f"No records found for {extractor.source_reference}")
                summary.status = "no_records"
            else:
                upserted = await self.loader.upsert(records)
                summary.inserted = upserted.inserted
                summary.updated = upserted.updated
                summary.errors = upserted.errors

                if upserted.errors:
                    raise LoadError(
                        f"{upserted.errors} records failed to load",
                        context={
                            "source_reference": extractor.source_reference,
                            "inserted": upserted.inserted,
                            "updated": upserted.updated,
                            "errors": upserted.errors
                        }
                    )

            if use_checkpoint and truncated:
                logger.info("Record limit dropped fetched records; checkpoint not advanced")
            elif use_checkpoint and result.next_offset != start_offset:
                # Best-effort: a missed save only means re-fetching next run
                await self.checkpoints.save_checkpoint(
                    extractor.source_kind, extractor.source_reference, result.next_offset
                )

            await self.checkpoints.log_run(log_entry.model_copy(update={
                "status": RunStatus.COMPLETED,
                "total_records": len(result.records),
                "new_records": summary.inserted,
                "updated_records": summary.updated
            }))

            logger.info(
                f"Completed {extractor.source_reference}: "
                f"{summary.inserted} new, {summary.updated} updated"
            )
            return summary

        except Exception as e:
            logger.error(f"Failed to process {extractor.source_kind.value} source {extractor.source_reference}: {e}")

            if not options.dry_run:
                await self.checkpoints.log_run(log_entry.model_copy(update={
                    "status": RunStatus.FAILED,
                    "total_records": summary.records_fetched,
                    "new_records": summary.inserted,
                    "updated_records": summary.updated,
                    "error_message": e.message if isinstance(e, ETLException) else str(e)
                }))
            raise

    @staticmethod
    def apply_filters(
        records: List[FactRecordCreate],
        options: RunOptions
    ) -> Tuple[List[FactRecordCreate], bool]:
        """
        Year floor keeps undated records; limit keeps the first N.

        Returns:
            (selected records, whether the limit dropped any)
        """
        filtered = records
        truncated = False

        if options.since is not None:
            filtered = [r for r in filtered if r.year is None or r.year >= options.since]
            logger.info(f"Filtered to {len(filtered)} records since {options.since}")

        if options.limit is not None:
            truncated = len(filtered) > options.limit
            filtered = filtered[:options.limit]
            logger.info(f"Limited to {len(filtered)} records")

        return filtered, truncated

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def show_stats(self):
        stats = await self.loader.get_stats()

        logger.info("=== DATABASE STATISTICS ===")
        logger.info(f"Total Records: {stats.get('total_records')}")
        logger.info(f"Total Categories: {stats.get('total_categories')}")
        logger.info(f"Total Elements: {stats.get('total_elements')}")

        year_range = stats.get("year_range")
        if year_range:
            logger.info(f"Year Range: {year_range[0]} - {year_range[1]}")

        by_category = stats.get("by_category") or {}
        if by_category:
            logger.info("Records by Category:")
            for category, count in by_category.items():
                logger.info(f"  {category}: {count}")

    @staticmethod
    def _reference(source: SourceConfig) -> str:
        if isinstance(source, ApiSourceConfig):
            return source.resource_id
        return source.file_name

    def _failure(self, source: SourceConfig, error: Exception) -> SourceFailure:
        is_api = isinstance(source, ApiSourceConfig)
        return SourceFailure(
            source_kind=SourceKind.API if is_api else SourceKind.FILE,
            source_reference=self._reference(source),
            category=source.category,
            error_type=type(error).__name__,
            message=error.message if isinstance(error, ETLException) else str(error)
        )
