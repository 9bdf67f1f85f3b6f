"""
Pipeline configuration: ETL settings and source definitions.

The JSON document keeps the field names used by the data portal team
(kategori, elemen_field, tahun_field, ...). Models expose English attribute
names and accept either spelling on input.

Example document:

    {
      "settings": {"base_url": "https://data.example.go.id/api/3/action/datastore_search",
                   "batch_size": 100, "max_retries": 3, "retry_delay": 1.0,
                   "timeout": 30, "enable_checkpoints": true},
      "sources": [
        {"kategori": "kependudukan", "resource_id": "abc-123",
         "mapping": {"elemen_field": "Elemen", "year_column_regex": "Data (\\d{4})"}}
      ],
      "csv_sources": [
        {"kategori": "pendidikan", "file_path": "data/sekolah.csv",
         "mapping": {"elemen_field": "Elemen", "tahun_field": "Tahun",
                     "nilai_field": "Nilai", "satuan_field": "Satuan"}}
      ]
    }
"""

import json
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.exceptions import ConfigurationError


class ConfigModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ============================================================================
# MAPPING MODES
# ============================================================================

class LongMapping(ConfigModel):
    """One source record holds one (element, year, value) observation"""

    element_path: str
    year_path: str
    value_path: str
    unit_path: Optional[str] = None


class WideMapping(ConfigModel):
    """One source record holds one element with a column per year"""

    element_path: str
    year_regex: str
    unit_path: Optional[str] = None


Mapping = Union[LongMapping, WideMapping]


class ApiMappingConfig(ConfigModel):
    element_field: str = Field(alias="elemen_field")

    # long mode
    year_field: Optional[str] = Field(None, alias="tahun_field")
    value_field: Optional[str] = Field(None, alias="nilai_field")
    unit_field_long: Optional[str] = Field(None, alias="satuan_field")

    # wide mode
    year_column_regex: Optional[str] = None
    unit_field: Optional[str] = None

    def resolve(self) -> Optional[Mapping]:
        """Pick the mapping mode, or None when neither is fully declared"""
        if self.year_field and self.value_field:
            return LongMapping(
                element_path=self.element_field,
                year_path=self.year_field,
                value_path=self.value_field,
                unit_path=self.unit_field_long,
            )
        if self.year_column_regex:
            return WideMapping(
                element_path=self.element_field,
                year_regex=self.year_column_regex,
                unit_path=self.unit_field,
            )
        return None


class FileMappingConfig(ConfigModel):
    element_field: Optional[str] = Field(None, alias="elemen_field")
    year_field: Optional[str] = Field(None, alias="tahun_field")
    value_field: Optional[str] = Field(None, alias="nilai_field")
    unit_field: Optional[str] = Field(None, alias="satuan_field")

    def missing_fields(self) -> List[str]:
        missing = []
        if not self.element_field:
            missing.append("elemen_field")
        if not self.year_field:
            missing.append("tahun_field")
        if not self.value_field:
            missing.append("nilai_field")
        return missing

    def configured_paths(self) -> List[str]:
        paths = [self.element_field, self.year_field, self.value_field, self.unit_field]
        return [p for p in paths if p]

    def resolve(self) -> LongMapping:
        missing = self.missing_fields()
        if missing:
            raise ConfigurationError(
                f"File mapping is missing required fields: {', '.join(missing)}",
                context={"missing_fields": missing}
            )
        return LongMapping(
            element_path=self.element_field,
            year_path=self.year_field,
            value_path=self.value_field,
            unit_path=self.unit_field,
        )


# ============================================================================
# SOURCES
# ============================================================================

class CsvOptions(ConfigModel):
    delimiter: str = ","
    header: bool = True
    encoding: str = "utf-8"


class ApiSourceConfig(ConfigModel):
    category: str = Field(alias="kategori", min_length=1, max_length=64)
    resource_id: str
    description: Optional[str] = None
    mapping: ApiMappingConfig


class FileSourceConfig(ConfigModel):
    category: str = Field(alias="kategori", min_length=1, max_length=64)
    file_path: str
    description: Optional[str] = None
    mapping: FileMappingConfig
    csv_options: CsvOptions = Field(default_factory=CsvOptions)

    # Opt-in row-offset checkpointing
    resumable: bool = False

    @property
    def file_name(self) -> str:
        return Path(self.file_path).name


class EtlSettings(ConfigModel):
    base_url: str = ""
    batch_size: int = Field(100, ge=1)
    max_retries: int = Field(3, ge=1)
    retry_delay: float = Field(1.0, ge=0)  # seconds, doubled per attempt
    timeout: float = Field(30.0, gt=0)  # seconds
    enable_checkpoints: bool = True
    page_delay: float = Field(0.1, ge=0)  # seconds between page requests
    upsert_chunk_size: Optional[int] = Field(None, ge=1)

    @property
    def chunk_size(self) -> int:
        return self.upsert_chunk_size or self.batch_size


class EtlConfig(ConfigModel):
    settings: EtlSettings = Field(default_factory=EtlSettings)
    sources: List[ApiSourceConfig] = Field(default_factory=list)
    file_sources: List[FileSourceConfig] = Field(default_factory=list, alias="csv_sources")


def load_etl_config(path: Union[str, Path]) -> EtlConfig:
    """Read and validate the pipeline configuration document"""
    config_path = Path(path).resolve()

    if not config_path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}",
            context={"config_path": str(config_path)}
        )

    try:
        document = json.loads(config_path.read_text(encoding="utf-8"))
        return EtlConfig.model_validate(document)
    except (ValueError, ValidationError) as e:
        raise ConfigurationError(
            f"Invalid configuration file: {config_path}",
            context={"config_path": str(config_path)},
            original_exception=e
        )
