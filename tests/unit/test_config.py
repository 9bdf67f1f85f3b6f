"""
Unit tests for the pipeline configuration document
"""

import json

import pytest
from pydantic import ValidationError

from core.exceptions import ConfigurationError
from schemas.sources import (
    ApiMappingConfig,
    ApiSourceConfig,
    FileMappingConfig,
    FileSourceConfig,
    LongMapping,
    WideMapping,
    load_etl_config,
)


def write_config(path, document):
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


class TestLoadEtlConfig:
    """Test reading and validating the JSON document"""

    def test_reads_wire_names(self, tmp_path):
        path = write_config(tmp_path / "etl.config.json", {
            "settings": {"batch_size": 50, "enable_checkpoints": False},
            "sources": [{
                "kategori": "kependudukan",
                "resource_id": "res-001",
                "mapping": {"elemen_field": "Elemen", "year_column_regex": r"Data (\d{4})"},
            }],
            "csv_sources": [{
                "kategori": "pendidikan",
                "file_path": "data/sekolah.csv",
                "mapping": {
                    "elemen_field": "Elemen",
                    "tahun_field": "Tahun",
                    "nilai_field": "Nilai",
                    "satuan_field": "Satuan",
                },
            }],
        })

        config = load_etl_config(path)

        assert config.settings.batch_size == 50
        assert config.settings.enable_checkpoints is False
        assert config.sources[0].category == "kependudukan"
        assert isinstance(config.sources[0].mapping.resolve(), WideMapping)
        assert config.file_sources[0].file_name == "sekolah.csv"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            load_etl_config(tmp_path / "absent.json")

        assert "not found" in exc_info.value.message

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "etl.config.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_etl_config(path)

    def test_overlong_category_is_a_configuration_error(self, tmp_path):
        """A category the fact table cannot hold fails at load, not per record"""
        path = write_config(tmp_path / "etl.config.json", {
            "sources": [{
                "kategori": "k" * 65,
                "resource_id": "res-001",
                "mapping": {"elemen_field": "Elemen", "tahun_field": "Tahun",
                            "nilai_field": "Nilai", "satuan_field": "Satuan"},
            }],
        })

        with pytest.raises(ConfigurationError) as exc_info:
            load_etl_config(path)

        assert isinstance(exc_info.value.original_exception, ValidationError)


class TestSourceConfig:
    """Test category bounds on both source kinds"""

    @pytest.mark.parametrize("category", ["", "k" * 65])
    def test_api_source_category_bounds(self, category):
        with pytest.raises(ValidationError):
            ApiSourceConfig(
                kategori=category,
                resource_id="res-001",
                mapping=ApiMappingConfig(elemen_field="Elemen", year_column_regex=r"(\d{4})"),
            )

    @pytest.mark.parametrize("category", ["", "k" * 65])
    def test_file_source_category_bounds(self, category):
        with pytest.raises(ValidationError):
            FileSourceConfig(
                kategori=category,
                file_path="data.csv",
                mapping=FileMappingConfig(elemen_field="Elemen"),
            )

    def test_category_at_limit_is_accepted(self):
        source = ApiSourceConfig(
            kategori="k" * 64,
            resource_id="res-001",
            mapping=ApiMappingConfig(
                elemen_field="Elemen", tahun_field="Tahun", nilai_field="Nilai", satuan_field="Satuan"
            ),
        )

        assert len(source.category) == 64
        assert isinstance(source.mapping.resolve(), LongMapping)
