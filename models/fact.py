from sqlalchemy import Column, String, Integer, Numeric, DateTime, Enum, Index
from datetime import datetime
from models.base import Base, BigIntegerPK, JSONPayload, SourceKind, enum_values


class FactRecord(Base):
    """
    One canonical observation: (category, element, year) -> value.

    Identity:
    - fingerprint is a SHA-256 over category|element|year|value|unit|source
      and is the only uniqueness constraint on the table
    - a repeated fingerprint updates value, unit, raw_payload and provenance;
      category, element and year are never rewritten

    Field Mapping Strategy:

    API (long mode):
    - elemen_field -> element
    - tahun_field -> year
    - nilai_field -> value
    - satuan_field -> unit

    API (wide mode):
    - elemen_field -> element
    - each key matching year_column_regex -> year (first capture group)
      and value (cell under that key)
    - unit_field, or "Satuan" -> unit

    Files (CSV / spreadsheet):
    - same four fields as long mode, matched against the header row
    """
    __tablename__ = "facts_long"

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)

    category = Column(String(64), nullable=False, index=True)
    element = Column(String(255), nullable=False, index=True)
    year = Column(Integer, nullable=True, index=True)
    value = Column(Numeric(18, 4), nullable=True)
    unit = Column(String(64), nullable=True)

    # Original source record, kept for audit/debug
    raw_payload = Column(JSONPayload, nullable=True)

    # Provenance
    source_kind = Column(
        Enum(SourceKind, name="source_kind", values_callable=enum_values),
        nullable=False,
        index=True
    )
    source_reference = Column(String(255), nullable=True)

    fingerprint = Column(String(64), nullable=False, unique=True)

    # Timestamps
    ingested_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_facts_category_year", "category", "year"),
    )
