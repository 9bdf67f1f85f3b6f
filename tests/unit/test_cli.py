"""
Unit tests for the command-line entry point
"""

from unittest.mock import AsyncMock, patch

import pytest

from core.config import Settings
from core.exceptions import ConfigurationError
from ingestion import cli
from models.base import SourceKind
from schemas.runs import PipelineReport, SourceFailure, SourceRunSummary
from schemas.sources import EtlConfig


class TestParseArgs:
    """Test argument parsing"""

    def test_defaults(self):
        args = cli.parse_args([])

        assert args.mode == "all"
        assert args.only is None
        assert args.since is None
        assert args.limit is None
        assert args.dry_run is False
        assert args.fail_fast is False
        assert args.config is None

    def test_all_options(self):
        args = cli.parse_args([
            "-m", "single", "--source-id", "res-001", "--only", "pendidikan",
            "--since", "2019", "--limit", "10", "--dry-run", "-c", "custom.json",
            "-v", "--fail-fast",
        ])

        options = cli.build_options(args)

        assert options.mode == "single"
        assert options.source_id == "res-001"
        assert options.only == "pendidikan"
        assert options.since == 2019
        assert options.limit == 10
        assert options.dry_run is True
        assert options.fail_fast is True
        assert args.config == "custom.json"
        assert args.verbose is True

    def test_csv_is_accepted_as_mode(self):
        assert cli.parse_args(["--mode", "csv"]).mode == "csv"

    def test_single_mode_requires_source_id(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["--mode", "single"])

    def test_unknown_mode_rejected(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["--mode", "rss"])

    def test_negative_limit_rejected(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["--limit", "-1"])


class TestMain:
    """Test exit codes"""

    def summary(self):
        return SourceRunSummary(
            source_kind=SourceKind.API,
            source_reference="res-001",
            category="kependudukan",
            inserted=3,
        )

    def test_success_exits_zero(self):
        report = PipelineReport(summaries=[self.summary()])

        with patch("ingestion.cli.setup_logging"), \
                patch("ingestion.cli.load_etl_config", return_value=EtlConfig()) as mock_load, \
                patch("ingestion.cli.run_pipeline", new=AsyncMock(return_value=report)) as mock_run:
            exit_code = cli.main(["--mode", "api", "-c", "custom.json"])

        assert exit_code == 0
        mock_load.assert_called_once_with("custom.json")
        options = mock_run.await_args.args[2]
        assert options.mode == "api"

    def test_source_failure_exits_one(self):
        report = PipelineReport(
            summaries=[self.summary()],
            failures=[SourceFailure(
                source_kind=SourceKind.FILE,
                source_reference="data.csv",
                category="statistik",
                error_type="ConfigurationError",
                message="File validation failed",
            )],
        )

        with patch("ingestion.cli.setup_logging"), \
                patch("ingestion.cli.load_etl_config", return_value=EtlConfig()), \
                patch("ingestion.cli.run_pipeline", new=AsyncMock(return_value=report)):
            assert cli.main([]) == 1

    def test_configuration_error_exits_one(self):
        error = ConfigurationError("Configuration file not found: etl.config.json")

        with patch("ingestion.cli.setup_logging"), \
                patch("ingestion.cli.load_etl_config", side_effect=error), \
                patch("ingestion.cli.run_pipeline", new=AsyncMock()) as mock_run:
            assert cli.main([]) == 1

        mock_run.assert_not_awaited()

    def test_config_path_defaults_to_settings(self):
        with patch("ingestion.cli.setup_logging"), \
                patch("ingestion.cli.Settings", return_value=Settings(ETL_CONFIG_PATH="from-env.json")), \
                patch("ingestion.cli.load_etl_config", return_value=EtlConfig()) as mock_load, \
                patch("ingestion.cli.run_pipeline", new=AsyncMock(return_value=PipelineReport())):
            assert cli.main([]) == 0

        mock_load.assert_called_once_with("from-env.json")


class TestRunPipeline:
    """Test the session lifecycle around a run"""

    @pytest.mark.asyncio
    async def test_empty_config_against_real_engine(self, tmp_path):
        settings = Settings(DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")

        report = await cli.run_pipeline(settings, EtlConfig(), cli.build_options(cli.parse_args([])))

        assert report.succeeded
        assert report.summaries == []
