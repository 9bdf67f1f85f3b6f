"""
Response envelope of the remote datastore search API (CKAN style)
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class CKANResult(BaseModel):
    resource_id: Optional[str] = None
    # Items stay untyped: a non-mapping record fails alone in the transformer
    records: List[Any] = Field(default_factory=list)
    total: int
    limit: Optional[int] = None
    offset: Optional[int] = None


class CKANResponse(BaseModel):
    success: bool
    result: Optional[CKANResult] = None
