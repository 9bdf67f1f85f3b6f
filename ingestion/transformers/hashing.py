"""
Content fingerprint used as the dedup/upsert key of fact records.

The rendered input is an on-disk contract: rows already stored were keyed
with it. Changing the field order, the separator or the rendering of a
field requires a new FINGERPRINT_VERSION and a re-key of facts_long.
"""

import hashlib
from decimal import Decimal
from typing import Any, Optional

FINGERPRINT_VERSION = 1
SEPARATOR = "|"


def _render(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Decimal):
        # 1200, 1200.5, -0.25: positional, no exponent, no trailing zeros
        rendered = format(value.normalize(), "f")
        return "0" if rendered == "-0" else rendered
    return str(value)


def compute_fingerprint(
    category: str,
    element: str,
    year: Optional[int],
    value: Optional[Decimal],
    unit: Optional[str],
    source_reference: str,
) -> str:
    """SHA-256 hex digest of category|element|year|value|unit|source_reference"""
    payload = SEPARATOR.join(
        _render(part)
        for part in (category, element, year, value, unit, source_reference)
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
