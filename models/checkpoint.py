from sqlalchemy import Column, Integer, String, Enum, DateTime, Index
from datetime import datetime
from models.base import Base, BigIntegerPK, SourceKind, enum_values


class EtlCheckpoint(Base):
    """
    Resume offset per source.

    Purpose:
    - Resume a paginated fetch from the last completed run
    - Skip already-loaded rows of resumable files

    Design:
    - One row per (source_kind, source_reference)
    - Written once per completed run, after its batch was upserted;
      a crash mid-run restarts from the previous run's offset and
      fingerprint dedup makes the re-fetched records a no-op
    """
    __tablename__ = "etl_checkpoints"

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)

    source_kind = Column(
        Enum(SourceKind, name="source_kind", values_callable=enum_values),
        nullable=False
    )
    source_reference = Column(String(255), nullable=False)

    last_offset = Column(Integer, nullable=False, default=0)
    last_processed_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    __table_args__ = (
        Index("idx_checkpoint_source", "source_kind", "source_reference", unique=True),
    )
