"""
Command-line entry point for the fact ETL pipeline.

Examples:
    etl-run                          # all API and file sources
    etl-run --mode api --only Kependudukan
    etl-run --mode single --source-id 3f1c...  --dry-run
    etl-run --mode file --since 2019 --limit 500
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from core.config import Settings
from core.database import create_session_factory
from core.exceptions import ETLException
from core.logging import setup_logging
from ingestion.runner import PipelineRunner
from schemas.runs import PipelineReport, RunOptions
from schemas.sources import EtlConfig, load_etl_config
import logging

logger = logging.getLogger(__name__)

MODES = ("all", "api", "file", "csv", "single")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="etl-run",
        description="Load API and file sources into the fact table"
    )
    parser.add_argument(
        "-m", "--mode",
        choices=MODES,
        default="all",
        help="Sources to process (csv is an alias of file)"
    )
    parser.add_argument("--only", metavar="CATEGORY", help="Process only this category")
    parser.add_argument("--since", type=int, metavar="YEAR", help="Keep records from this year on")
    parser.add_argument("--limit", type=int, metavar="N", help="Keep at most N records per source")
    parser.add_argument("--dry-run", action="store_true", help="Load and filter without writing")
    parser.add_argument(
        "--source-id",
        metavar="ID",
        help="Resource id, category or file name (single mode)"
    )
    parser.add_argument(
        "-c", "--config",
        metavar="PATH",
        help="Pipeline configuration file (default: ETL_CONFIG_PATH)"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Stop at the first failed source"
    )

    args = parser.parse_args(argv)

    if args.mode == "single" and not args.source_id:
        parser.error("--source-id is required for single mode")
    if args.limit is not None and args.limit < 0:
        parser.error("--limit must be zero or positive")

    return args


def build_options(args: argparse.Namespace) -> RunOptions:
    return RunOptions(
        mode=args.mode,
        only=args.only,
        since=args.since,
        limit=args.limit,
        dry_run=args.dry_run,
        source_id=args.source_id,
        fail_fast=args.fail_fast
    )


async def run_pipeline(settings: Settings, config: EtlConfig, options: RunOptions) -> PipelineReport:
    """Open one session for the whole run and always dispose the engine"""
    engine, session_factory = create_session_factory(settings)
    try:
        async with session_factory() as session:
            runner = PipelineRunner(session, config)
            return await runner.run(options)
    finally:
        await engine.dispose()


def log_report(report: PipelineReport):
    for summary in report.summaries:
        logger.info(
            f"{summary.source_kind.value} {summary.source_reference} [{summary.status}]: "
            f"fetched={summary.records_fetched} selected={summary.records_selected} "
            f"inserted={summary.inserted} updated={summary.updated} "
            f"offset={summary.start_offset}->{summary.next_offset}"
        )
    for failure in report.failures:
        logger.error(
            f"{failure.source_kind.value} {failure.source_reference} failed "
            f"({failure.error_type}): {failure.message}"
        )


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    settings = Settings()
    setup_logging(settings, verbose=args.verbose)

    try:
        config = load_etl_config(args.config or settings.ETL_CONFIG_PATH)
        report = asyncio.run(run_pipeline(settings, config, build_options(args)))
    except ETLException as e:
        logger.error(f"ETL pipeline error: {e}", extra={"error_context": e.to_dict()})
        return 1
    except Exception as e:
        logger.exception(f"ETL pipeline error: {e}")
        return 1

    log_report(report)

    if not report.succeeded:
        logger.error(f"{len(report.failures)} source(s) failed")
        return 1

    logger.info("All ETL jobs completed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
