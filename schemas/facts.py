"""
Pydantic schemas for canonical fact records and load results
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from models.base import SourceKind


class FactRecordCreate(BaseModel):
    """
    Canonical fact record produced by every loader.

    Ensures:
    - element is trimmed and non-empty
    - fingerprint is a 64-character lowercase hex digest
    """

    category: str = Field(..., min_length=1, max_length=64)
    element: str = Field(..., min_length=1, max_length=255)
    year: Optional[int] = None
    value: Optional[Decimal] = None
    unit: Optional[str] = Field(None, max_length=64)

    raw_payload: Dict[str, Any] = Field(default_factory=dict)

    source_kind: SourceKind
    source_reference: str
    fingerprint: str = Field(..., pattern=r"^[0-9a-f]{64}$")

    @field_validator("element")
    @classmethod
    def clean_element(cls, v):
        """Element must survive trimming"""
        v = v.strip()
        if not v:
            raise ValueError("Element cannot be empty after stripping")
        return v


class LoadResult(BaseModel):
    """Output of one loader pass over a source"""

    records: List[FactRecordCreate] = Field(default_factory=list)

    # Offsets are in source rows (API records or file data rows)
    start_offset: int = 0
    next_offset: int = 0

    rows_read: int = 0
    rows_failed: int = 0
    pages: int = 0

    # Non-fatal configuration problems for the caller to log
    warnings: List[str] = Field(default_factory=list)


class UpsertResult(BaseModel):
    """Counts for an upsert, summed across chunks"""

    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    def __add__(self, other: "UpsertResult") -> "UpsertResult":
        return UpsertResult(
            inserted=self.inserted + other.inserted,
            updated=self.updated + other.updated,
            skipped=self.skipped + other.skipped,
            errors=self.errors + other.errors,
        )


class ValidationReport(BaseModel):
    """Pre-flight check of a file source against its mapping"""

    valid: bool
    errors: List[str] = Field(default_factory=list)
