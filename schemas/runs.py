"""
Schemas for run orchestration: CLI options, run-log entries and summaries
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from models.base import RunStatus, SourceKind

RunMode = Literal["all", "api", "file", "csv", "single"]


class RunOptions(BaseModel):
    mode: RunMode = "all"
    only: Optional[str] = None  # category filter
    since: Optional[int] = None  # year floor
    limit: Optional[int] = Field(None, ge=0)
    dry_run: bool = False
    source_id: Optional[str] = None  # single mode selector
    fail_fast: bool = False


class RunLogEntry(BaseModel):
    """One status transition of a source run"""

    run_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    source_kind: SourceKind
    source_reference: str
    category: Optional[str] = None
    status: RunStatus
    total_records: int = 0
    new_records: int = 0
    updated_records: int = 0
    error_message: Optional[str] = None
    started_at: datetime = Field(default_factory=datetime.utcnow)


class SourceRunSummary(BaseModel):
    source_kind: SourceKind
    source_reference: str
    category: str
    status: str = "success"  # success | dry_run | no_records

    records_fetched: int = 0
    records_selected: int = 0
    rows_failed: int = 0

    inserted: int = 0
    updated: int = 0
    errors: int = 0

    start_offset: int = 0
    next_offset: int = 0


class SourceFailure(BaseModel):
    source_kind: SourceKind
    source_reference: str
    category: str
    error_type: str
    message: str


class PipelineReport(BaseModel):
    summaries: List[SourceRunSummary] = Field(default_factory=list)
    failures: List[SourceFailure] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures
