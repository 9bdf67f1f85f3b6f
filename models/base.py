from sqlalchemy import BigInteger, Integer, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()

# BIGINT primary keys only autoincrement on SQLite when declared INTEGER
BigIntegerPK = BigInteger().with_variant(Integer(), "sqlite")

# JSONB on PostgreSQL, plain JSON elsewhere
JSONPayload = JSON().with_variant(JSONB(), "postgresql")


# ============================================================================
# ENUMS
# ============================================================================

class SourceKind(str, enum.Enum):
    """Provenance of a fact record"""
    API = "api"
    FILE = "file"


class RunStatus(str, enum.Enum):
    """Run log status"""
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


def enum_values(enum_cls):
    """Persist enum values ("api") rather than member names ("API")"""
    return [member.value for member in enum_cls]
