"""
Transform raw source records into canonical fact records.

Source data is typed in by hand on the portal side: thousands separators in
either convention, currency prefixes, stray whitespace. The parsers below
never raise; a cell that cannot be read becomes None.
"""

import json
import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from core.exceptions import ConfigurationError, RecordTransformError
from ingestion.transformers.fields import MISSING, extract_field
from ingestion.transformers.hashing import compute_fingerprint
from models.base import SourceKind
from schemas.facts import FactRecordCreate
from schemas.sources import LongMapping, Mapping, WideMapping
import logging

logger = logging.getLogger(__name__)

# Conventional unit column on regional CKAN portals
DEFAULT_UNIT_KEY = "Satuan"

# Key added to the raw payload of wide-mode records
VALUE_FROM_KEY = "__value_from__"

_INT_PATTERN = re.compile(r"-?\d+")
_FLOAT_STRIP = re.compile(r"[^\d.,\-]")
_DOT_THOUSANDS = re.compile(r"-?[1-9]\d{0,2}(\.\d{3})+")


def _is_blank(value: Any) -> bool:
    return value is None or value is MISSING or isinstance(value, bool)


def normalize_int(value: Any) -> Optional[int]:
    """Parse an integer, keeping only digits and a leading minus sign"""
    if _is_blank(value):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        try:
            if not math.isfinite(value) or value != int(value):
                return None
        except (ValueError, OverflowError):
            return None
        return int(value)

    cleaned = re.sub(r"[^\d-]", "", str(value))
    match = _INT_PATTERN.match(cleaned)
    if not match:
        return None
    return int(match.group())


def normalize_float(value: Any) -> Optional[Decimal]:
    """
    Parse a decimal number written in either thousands convention.

    "1,200" -> 1200, "1.200" -> 1200, "1.234,56" -> 1234.56,
    "Rp 1.500.000" -> 1500000, "12.5" -> 12.5
    """
    if _is_blank(value):
        return None
    if isinstance(value, (int, float, Decimal)):
        try:
            parsed = Decimal(str(value))
        except InvalidOperation:
            return None
        return parsed if parsed.is_finite() else None

    cleaned = _FLOAT_STRIP.sub("", str(value))
    if not cleaned:
        return None

    if "," in cleaned and "." in cleaned and cleaned.rfind(",") > cleaned.rfind("."):
        cleaned = cleaned.replace(".", "").replace(",", ".")
    elif _DOT_THOUSANDS.fullmatch(cleaned):
        cleaned = cleaned.replace(".", "")
    else:
        cleaned = cleaned.replace(",", "")

    try:
        parsed = Decimal(cleaned)
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


def clean_string(value: Any) -> Optional[str]:
    """Trim; an empty result is None"""
    if value is None or value is MISSING:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    cleaned = str(value).strip()
    return cleaned or None


def _json_safe(record: Dict[str, Any]) -> Dict[str, Any]:
    """Round-trip through JSON so the payload can be stored as-is"""
    return json.loads(json.dumps(record, default=str))


class FactTransformer:
    """
    Turn one source record into zero or more fact records.

    The mapping mode is chosen once at construction:
    - LongMapping: one record in, at most one fact out
    - WideMapping: one fact per key matching the year regex
    - None: nothing is emitted; ``warning`` explains why
    """

    def __init__(
        self,
        category: str,
        source_kind: SourceKind,
        source_reference: str,
        mapping: Optional[Mapping]
    ):
        self.category = category
        self.source_kind = source_kind
        self.source_reference = source_reference
        self.mapping = mapping
        self.warning: Optional[str] = None
        self._year_pattern: Optional[re.Pattern] = None

        if isinstance(mapping, LongMapping):
            self._transform: Callable[[Dict[str, Any]], List[FactRecordCreate]] = self._transform_long
        elif isinstance(mapping, WideMapping):
            self._year_pattern = self._compile_year_regex(mapping.year_regex)
            self._transform = self._transform_wide
        else:
            self.warning = (
                f"[{category}] Incomplete mapping: declare (tahun_field & nilai_field) "
                f"or year_column_regex"
            )
            self._transform = self._transform_nothing

    def _compile_year_regex(self, pattern: str) -> re.Pattern:
        try:
            compiled = re.compile(pattern)
        except re.error as e:
            raise ConfigurationError(
                f"Invalid year_column_regex '{pattern}'",
                context={"category": self.category, "source_reference": self.source_reference},
                original_exception=e
            )
        if compiled.groups < 1:
            raise ConfigurationError(
                f"year_column_regex '{pattern}' must capture the year in a group",
                context={"category": self.category, "source_reference": self.source_reference}
            )
        return compiled

    @property
    def is_configured(self) -> bool:
        return self.warning is None

    def transform(self, record: Dict[str, Any]) -> List[FactRecordCreate]:
        """
        Transform a single source record.

        Raises:
            RecordTransformError: The record is not a mapping or yields an
                invalid fact. Callers skip the record and continue.
        """
        if not isinstance(record, dict):
            raise RecordTransformError(
                f"Expected a mapping, got {type(record).__name__}",
                context={"source_reference": self.source_reference}
            )
        try:
            return self._transform(record)
        except (ValueError, TypeError) as e:
            raise RecordTransformError(
                "Record could not be normalized",
                context={"source_reference": self.source_reference},
                original_exception=e
            )

    def _make_fact(
        self,
        element: str,
        year: Optional[int],
        value: Optional[Decimal],
        unit: Optional[str],
        raw_payload: Dict[str, Any]
    ) -> FactRecordCreate:
        return FactRecordCreate(
            category=self.category,
            element=element,
            year=year,
            value=value,
            unit=unit,
            raw_payload=_json_safe(raw_payload),
            source_kind=self.source_kind,
            source_reference=self.source_reference,
            fingerprint=compute_fingerprint(
                self.category, element, year, value, unit, self.source_reference
            ),
        )

    def _transform_long(self, record: Dict[str, Any]) -> List[FactRecordCreate]:
        mapping: LongMapping = self.mapping
        element = clean_string(extract_field(record, mapping.element_path))
        if not element:
            return []

        year = normalize_int(extract_field(record, mapping.year_path))
        value = normalize_float(extract_field(record, mapping.value_path))
        unit = clean_string(extract_field(record, mapping.unit_path))

        return [self._make_fact(element, year, value, unit, record)]

    def _transform_wide(self, record: Dict[str, Any]) -> List[FactRecordCreate]:
        mapping: WideMapping = self.mapping
        element = clean_string(extract_field(record, mapping.element_path))
        if not element:
            return []

        unit = clean_string(extract_field(record, mapping.unit_path))
        if unit is None:
            unit = clean_string(extract_field(record, DEFAULT_UNIT_KEY))

        facts = []
        for key in record:
            match = self._year_pattern.search(str(key))
            if not match:
                continue
            year = normalize_int(match.group(1))
            value = normalize_float(record[key])
            payload = {**record, VALUE_FROM_KEY: key}
            facts.append(self._make_fact(element, year, value, unit, payload))
        return facts

    def _transform_nothing(self, record: Dict[str, Any]) -> List[FactRecordCreate]:
        return []
