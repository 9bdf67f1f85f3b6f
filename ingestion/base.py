"""
Abstract base class for fact sources
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Tuple

from ingestion.transformers.normalizer import FactTransformer
from models.base import SourceKind
from schemas.facts import FactRecordCreate, LoadResult
import logging

logger = logging.getLogger(__name__)


class FactSource(ABC):
    """
    Abstract base class for all fact sources.

    Responsibilities:
    - Produce canonical fact records from raw rows
    - Isolate per-record transform failures (skip, count, continue)

    Storage, checkpoints and run logging belong to the caller.
    """

    def __init__(
        self,
        source_kind: SourceKind,
        category: str,
        source_reference: str
    ):
        self.source_kind = source_kind
        self.category = category
        self.source_reference = source_reference

    @abstractmethod
    def build_transformer(self) -> FactTransformer:
        """Build the transformer for this source's mapping"""
        pass

    @abstractmethod
    async def load(self, start_offset: int = 0) -> LoadResult:
        """
        Produce fact records, starting at ``start_offset`` source rows.

        Args:
            start_offset: Rows already handled by a previous run

        Returns:
            LoadResult with records and the offset to resume from next time
        """
        pass

    def transform_rows(
        self,
        transformer: FactTransformer,
        rows: Iterable[Any],
        start_index: int = 0
    ) -> Tuple[List[FactRecordCreate], int]:
        """
        Transform rows one at a time.

        Returns:
            (fact records, number of rows that failed)
        """
        records: List[FactRecordCreate] = []
        failed = 0

        for index, row in enumerate(rows, start=start_index):
            try:
                records.extend(transformer.transform(row))
            except Exception as e:
                failed += 1
                logger.warning(
                    f"Failed to process record {index + 1} from {self.source_reference}: {e}"
                )

        return records, failed
