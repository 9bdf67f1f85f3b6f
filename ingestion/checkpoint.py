"""
Checkpoint and run-log persistence.

Both are side channels of the pipeline: every method here swallows its own
failures (logged, rolled back) and reports them through its return value.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import upsert_insert
from core.exceptions import CheckpointError
from models.base import RunStatus, SourceKind
from models.checkpoint import EtlCheckpoint
from models.etl_run import EtlRunLog
from schemas.runs import RunLogEntry
import logging

logger = logging.getLogger(__name__)


class CheckpointManager:
    """
    Resume offsets per (source_kind, source_reference) and the run log.

    - get_checkpoint: 0 when absent or unreadable
    - save_checkpoint: upsert of the offset row, True on success
    - log_run: append one run-log row, True on success
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def _rollback(self):
        try:
            await self.db.rollback()
        except Exception as e:
            logger.warning(f"Rollback after side-channel failure also failed: {e}")

    async def get_checkpoint(self, source_kind: SourceKind, source_reference: str) -> int:
        """Last saved offset, or 0 when there is none or it cannot be read"""
        try:
            result = await self.db.execute(
                select(EtlCheckpoint.last_offset).where(
                    and_(
                        EtlCheckpoint.source_kind == source_kind,
                        EtlCheckpoint.source_reference == source_reference
                    )
                )
            )
            offset = result.scalar_one_or_none()
            return max(offset or 0, 0)
        except Exception as e:
            error = CheckpointError(
                "Failed to get checkpoint",
                context={
                    "source_kind": source_kind.value,
                    "source_reference": source_reference,
                    "operation": "read"
                },
                original_exception=e
            )
            logger.warning(str(error))
            await self._rollback()
            return 0

    async def save_checkpoint(
        self,
        source_kind: SourceKind,
        source_reference: str,
        offset: int
    ) -> bool:
        """Create or move the checkpoint to ``offset``"""
        now = datetime.utcnow()
        try:
            stmt = upsert_insert(self.db, EtlCheckpoint).values(
                source_kind=source_kind,
                source_reference=source_reference,
                last_offset=offset,
                last_processed_at=now
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["source_kind", "source_reference"],
                set_={
                    "last_offset": stmt.excluded.last_offset,
                    "last_processed_at": stmt.excluded.last_processed_at
                }
            )
            await self.db.execute(stmt)
            await self.db.commit()
            logger.debug(f"Checkpoint saved for {source_reference}: offset {offset}")
            return True
        except Exception as e:
            error = CheckpointError(
                "Failed to save checkpoint",
                context={
                    "source_kind": source_kind.value,
                    "source_reference": source_reference,
                    "checkpoint_value": offset,
                    "operation": "write"
                },
                original_exception=e
            )
            logger.warning(str(error))
            await self._rollback()
            return False

    async def log_run(self, entry: RunLogEntry) -> bool:
        """Append a run-log row"""
        completed_at: Optional[datetime] = None
        if entry.status in (RunStatus.COMPLETED, RunStatus.FAILED):
            completed_at = datetime.utcnow()

        try:
            self.db.add(EtlRunLog(
                run_id=entry.run_id,
                source_kind=entry.source_kind,
                source_reference=entry.source_reference,
                category=entry.category,
                status=entry.status,
                total_records=entry.total_records,
                new_records=entry.new_records,
                updated_records=entry.updated_records,
                error_message=entry.error_message,
                started_at=entry.started_at,
                completed_at=completed_at
            ))
            await self.db.commit()
            return True
        except Exception as e:
            logger.warning(f"Failed to log ETL activity: {e}")
            await self._rollback()
            return False
