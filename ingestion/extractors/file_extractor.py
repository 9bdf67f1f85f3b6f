"""
Delimited-text and spreadsheet extractor with pre-flight validation
"""

import pandas as pd
from typing import Any, Dict, List, Optional
from pathlib import Path
from ingestion.base import FactSource
from ingestion.transformers.fields import field_exists
from ingestion.transformers.normalizer import FactTransformer
from models.base import SourceKind
from schemas.facts import LoadResult, ValidationReport
from schemas.sources import FileSourceConfig
from core.exceptions import ConfigurationError, FileExtractionError
import logging

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = {".csv"}
SPREADSHEET_EXTENSIONS = {".xlsx", ".xls"}

# Data rows sampled by validate()
VALIDATION_SAMPLE_ROWS = 5


class FileExtractor(FactSource):
    """
    Extract fact records from a CSV or Excel file.

    Supports:
    - Delimiter, header and encoding options for CSV
    - First worksheet of a spreadsheet, first row as header
    - Long-mode mapping only (one row, one fact)
    - Optional row-offset resume
    """

    def __init__(self, source: FileSourceConfig, base_dir: Optional[Path] = None):
        super().__init__(
            source_kind=SourceKind.FILE,
            category=source.category,
            source_reference=source.file_name
        )
        self.source = source
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()

    @property
    def file_path(self) -> Path:
        path = Path(self.source.file_path)
        if path.is_absolute():
            return path
        return (self.base_dir / path).resolve()

    def build_transformer(self) -> FactTransformer:
        return FactTransformer(
            category=self.category,
            source_kind=self.source_kind,
            source_reference=self.source_reference,
            mapping=self.source.mapping.resolve()
        )

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def _read_rows(self, nrows: Optional[int] = None) -> List[Dict[str, Any]]:
        """Dispatch on extension; every cell comes back as a trimmed string"""
        path = self.file_path
        extension = path.suffix.lower()

        if extension in CSV_EXTENSIONS:
            frame = self._read_csv(path, nrows)
        elif extension in SPREADSHEET_EXTENSIONS:
            frame = self._read_spreadsheet(path, nrows)
        else:
            raise ConfigurationError(
                f"Unsupported file type: {extension or '(none)'}",
                context={"file_path": str(path), "file_type": extension}
            )

        frame.columns = [str(column).strip() for column in frame.columns]
        frame = frame.apply(lambda column: column.astype(str).str.strip())
        return frame.to_dict(orient="records")

    def _read_csv(self, path: Path, nrows: Optional[int]) -> pd.DataFrame:
        options = self.source.csv_options
        try:
            frame = pd.read_csv(
                path,
                sep=options.delimiter,
                header=0 if options.header else None,
                encoding=options.encoding,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                nrows=nrows
            )
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
        except (ValueError, OSError, pd.errors.ParserError) as e:
            raise FileExtractionError(
                f"Failed to parse CSV: {e}",
                context={"file_path": str(path), "file_type": ".csv"},
                original_exception=e
            )

        if not options.header:
            # Headerless files are mapped by column position: "0", "1", ...
            frame.columns = [str(index) for index in range(len(frame.columns))]
        return frame

    def _read_spreadsheet(self, path: Path, nrows: Optional[int]) -> pd.DataFrame:
        try:
            frame = pd.read_excel(
                path,
                sheet_name=0,
                header=0,
                dtype=str,
                keep_default_na=False,
                nrows=nrows
            )
        except (ValueError, OSError, ImportError) as e:
            raise FileExtractionError(
                f"Failed to parse Excel file: {e}",
                context={"file_path": str(path), "file_type": path.suffix.lower()},
                original_exception=e
            )

        # Drop fully blank rows
        return frame[(frame != "").any(axis=1)]

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> ValidationReport:
        """
        Check that the file exists, parses, has data, and that every mapped
        field resolves against the sampled rows. Never raises.
        """
        errors: List[str] = []
        path = self.file_path

        if not path.exists():
            errors.append(f"File not found: {path}")
            return ValidationReport(valid=False, errors=errors)

        missing = self.source.mapping.missing_fields()
        if missing:
            errors.append(f"Mapping is missing required fields: {', '.join(missing)}")
            return ValidationReport(valid=False, errors=errors)

        try:
            sample = self._read_rows(nrows=VALIDATION_SAMPLE_ROWS)
        except (ConfigurationError, FileExtractionError) as e:
            errors.append(e.message)
            return ValidationReport(valid=False, errors=errors)

        if not sample:
            errors.append("No data records found in file")
            return ValidationReport(valid=False, errors=errors)

        sample_record = sample[0]
        available = ", ".join(str(key) for key in sample_record)

        for field in self.source.mapping.configured_paths():
            if not field_exists(sample_record, field):
                errors.append(f"Required field '{field}' not found. Available fields: {available}")

        return ValidationReport(valid=not errors, errors=errors)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self, start_offset: int = 0) -> LoadResult:
        """
        Read the file and transform rows from ``start_offset`` on.

        Raises:
            FileExtractionError: File missing or unreadable
            ConfigurationError: Unsupported extension or incomplete mapping
        """
        path = self.file_path
        if not path.exists():
            raise FileExtractionError(
                f"File not found: {path}",
                context={"file_path": str(path)}
            )

        transformer = self.build_transformer()

        logger.info(f"Loading data from {path}")
        rows = self._read_rows()
        logger.info(f"Loaded {len(rows)} raw records from {self.source_reference}")

        start = min(start_offset, len(rows))
        records, failed = self.transform_rows(transformer, rows[start:], start_index=start)

        logger.info(f"Processed {len(records)} valid records")

        return LoadResult(
            records=records,
            start_offset=start_offset,
            next_offset=len(rows),
            rows_read=len(rows) - start,
            rows_failed=failed
        )
