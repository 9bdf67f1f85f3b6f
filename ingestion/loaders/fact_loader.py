"""
Load fact records with fingerprint upserts (idempotency)
"""

from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import upsert_insert
from core.exceptions import UpsertError
from models.fact import FactRecord
from schemas.facts import FactRecordCreate, UpsertResult
import logging

logger = logging.getLogger(__name__)

# Rewritten on fingerprint conflict; category, element, year and
# fingerprint itself are identity and never change
MUTABLE_COLUMNS = ("value", "unit", "raw_payload", "source_kind", "source_reference")


class FactLoader:
    """
    Load fact records with idempotent upsert operations.

    Ensures:
    - One row per fingerprint, however often a record is loaded
    - Each chunk is its own transaction (all-or-nothing)
    - A failed chunk is counted and the next chunk is still attempted

    Insert/update counts are exact per chunk: fingerprints already present
    are read inside the chunk's transaction before the upsert. A concurrent
    writer landing between the read and the upsert would be counted as an
    insert; runs are sequential so this does not happen in practice.
    """

    def __init__(self, db_session: AsyncSession, chunk_size: int = 1000):
        self.db = db_session
        self.chunk_size = chunk_size

    @staticmethod
    def _to_row(record: FactRecordCreate, now: datetime) -> Dict[str, Any]:
        row = record.model_dump()
        row["ingested_at"] = now
        row["updated_at"] = now
        return row

    async def upsert_chunk(self, records: List[FactRecordCreate]) -> UpsertResult:
        """
        Upsert one chunk in a single transaction.

        Duplicate fingerprints inside the chunk collapse to the last one
        and count as updates.

        Raises:
            UpsertError: The chunk was rolled back
        """
        if not records:
            return UpsertResult()

        now = datetime.utcnow()
        rows: Dict[str, Dict[str, Any]] = {}
        for record in records:
            rows[record.fingerprint] = self._to_row(record, now)
        duplicates = len(records) - len(rows)

        try:
            existing_result = await self.db.execute(
                select(FactRecord.fingerprint).where(FactRecord.fingerprint.in_(list(rows)))
            )
            existing = set(existing_result.scalars().all())

            stmt = upsert_insert(self.db, FactRecord).values(list(rows.values()))
            set_ = {column: stmt.excluded[column] for column in MUTABLE_COLUMNS}
            set_["updated_at"] = stmt.excluded.updated_at
            stmt = stmt.on_conflict_do_update(index_elements=["fingerprint"], set_=set_)

            await self.db.execute(stmt)
            await self.db.commit()

        except Exception as e:
            await self.db.rollback()
            raise UpsertError(
                "Failed to upsert fact chunk",
                context={
                    "chunk_size": len(records),
                    "operation": "UPSERT",
                    "table_name": FactRecord.__tablename__
                },
                original_exception=e
            )

        result = UpsertResult(
            inserted=len(rows) - len(existing),
            updated=len(existing) + duplicates
        )
        logger.info(f"Upsert OK: {result.inserted} inserted, {result.updated} updated")
        return result

    async def upsert(self, records: List[FactRecordCreate]) -> UpsertResult:
        """
        Upsert records in sequential chunks of ``chunk_size``.

        Returns:
            Counts summed across chunks; ``errors`` holds the number of
            records in chunks that failed.
        """
        total = UpsertResult()

        for i in range(0, len(records), self.chunk_size):
            chunk = records[i:i + self.chunk_size]
            chunk_number = i // self.chunk_size + 1

            try:
                total = total + await self.upsert_chunk(chunk)
                logger.info(f"Processed batch {chunk_number}: {len(chunk)} records")
            except UpsertError as e:
                logger.error(
                    f"Error processing batch {chunk_number} starting at index {i}: {e}",
                    extra={"error_context": e.to_dict()}
                )
                total = total + UpsertResult(errors=len(chunk))

        return total

    async def get_stats(self) -> Dict[str, Any]:
        """
        Summary statistics of the fact table.

        Each query is isolated; a failing one yields None for its key.
        """
        queries = {
            "total_records": select(func.count()).select_from(FactRecord),
            "total_categories": select(func.count(func.distinct(FactRecord.category))),
            "total_elements": select(func.count(func.distinct(FactRecord.element))),
            "last_update": select(func.max(FactRecord.updated_at)),
            "year_range": select(func.min(FactRecord.year), func.max(FactRecord.year))
            .where(FactRecord.year.is_not(None)),
            "by_category": select(FactRecord.category, func.count())
            .group_by(FactRecord.category)
            .order_by(func.count().desc()),
        }

        stats: Dict[str, Any] = {}
        for key, query in queries.items():
            try:
                result = await self.db.execute(query)
                if key == "year_range":
                    stats[key] = tuple(result.one())
                elif key == "by_category":
                    stats[key] = {category: count for category, count in result.all()}
                else:
                    stats[key] = result.scalar()
            except Exception as e:
                logger.warning(f"Failed to execute stats query {key}: {e}")
                await self.db.rollback()
                stats[key] = None

        return stats

    async def test_connection(self) -> bool:
        """SELECT 1 round trip"""
        try:
            result = await self.db.execute(text("SELECT 1"))
            return result.scalar() == 1
        except Exception as e:
            logger.error(f"Database connection test failed: {e}")
            return False
