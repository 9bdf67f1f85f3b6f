from sqlalchemy import Column, Integer, String, Enum, DateTime, Text, Index, Uuid
from datetime import datetime
import uuid
from models.base import Base, BigIntegerPK, SourceKind, RunStatus, enum_values


class EtlRunLog(Base):
    """
    Append-only audit trail of ETL runs.

    Purpose:
    - One row per status transition (started, then completed or failed)
    - run_id ties the rows of a single run together
    - Error tracking and debugging

    Writes are best-effort: a failed insert is logged and dropped.
    """
    __tablename__ = "etl_logs"

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    run_id = Column(Uuid, default=uuid.uuid4, nullable=False, index=True)

    # Source identification
    source_kind = Column(
        Enum(SourceKind, name="source_kind", values_callable=enum_values),
        nullable=False
    )
    source_reference = Column(String(255), nullable=False)
    category = Column(String(64), nullable=True)

    status = Column(
        Enum(RunStatus, name="run_status", values_callable=enum_values),
        nullable=False,
        index=True
    )

    # Statistics
    total_records = Column(Integer, default=0)
    new_records = Column(Integer, default=0)
    updated_records = Column(Integer, default=0)

    error_message = Column(Text, nullable=True)

    # Timestamps
    started_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_etl_logs_source", "source_kind", "source_reference"),
    )
