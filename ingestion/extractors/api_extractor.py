"""
Remote datastore extractor with offset pagination, rate limiting and retries.

This module provides:
- Exponential backoff retry per page (retry_delay * 2^(attempt-1))
- A fixed pause between page requests
- Long and wide mapping modes via FactTransformer
- Per-record failure isolation

Request contract:
    GET {base_url}?resource_id=...&offset=...&limit=...
    -> {"success": true, "result": {"records": [...], "total": N, ...}}
"""

import httpx
import asyncio
from typing import Optional
from pydantic import ValidationError
from ingestion.base import FactSource
from ingestion.transformers.normalizer import FactTransformer
from models.base import SourceKind
from schemas.ckan import CKANResponse, CKANResult
from schemas.facts import LoadResult
from schemas.sources import ApiSourceConfig, EtlSettings
from core.exceptions import (
    APIExtractionError,
    NetworkError,
    RateLimitError,
    AuthenticationError,
    ResourceNotFoundError,
)
import logging

logger = logging.getLogger(__name__)

USER_AGENT = "facts-etl/1.0"


class CKANApiExtractor(FactSource):
    """
    Extract fact records from a paginated CKAN datastore resource.

    State machine per load:
        INIT -> FETCHING -> (MORE -> FETCHING | DONE)

    Pagination stops on an empty page or once offset >= reported total.
    Exhausted retries fail the whole load; nothing is stored here.

    Attributes:
        batch_size: Records requested per page
        max_retries: Attempts per page (default: 3)
        retry_delay: Base backoff delay in seconds (default: 1.0)
        timeout: Request timeout in seconds (default: 30.0)
        page_delay: Pause between successive pages in seconds (default: 0.1)
    """

    def __init__(
        self,
        source: ApiSourceConfig,
        settings: EtlSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(
            source_kind=SourceKind.API,
            category=source.category,
            source_reference=source.resource_id
        )
        self.source = source
        self.base_url = settings.base_url
        self.batch_size = settings.batch_size
        self.max_retries = settings.max_retries
        self.retry_delay = settings.retry_delay
        self.timeout = settings.timeout
        self.page_delay = settings.page_delay
        self.transport = transport

    @property
    def resource_id(self) -> str:
        return self.source.resource_id

    def build_transformer(self) -> FactTransformer:
        return FactTransformer(
            category=self.category,
            source_kind=self.source_kind,
            source_reference=self.resource_id,
            mapping=self.source.mapping.resolve()
        )

    def _backoff(self, attempt: int) -> float:
        return self.retry_delay * (2 ** (attempt - 1))

    def _check_status(self, response: httpx.Response, offset: int):
        """Map HTTP status codes onto the exception hierarchy"""
        context = {
            "status_code": response.status_code,
            "api_url": self.base_url,
            "resource_id": self.resource_id,
            "offset": offset
        }

        if response.status_code in (401, 403):
            raise AuthenticationError(f"Authentication failed for {self.base_url}", context=context)

        if response.status_code == 404:
            raise ResourceNotFoundError(f"Resource not found: {self.resource_id}", context=context)

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                f"Rate limited by {self.base_url}",
                context=context,
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None
            )

        response.raise_for_status()

    async def _fetch_page(self, client: httpx.AsyncClient, offset: int) -> CKANResult:
        """
        Fetch one page with retry logic and exponential backoff.

        Retried: transport errors, timeouts, 429, 5xx, unparsable bodies and
        ``success: false``. Not retried: 401, 403, 404.

        Raises:
            AuthenticationError, ResourceNotFoundError: Immediately
            NetworkError: After max_retries failed attempts
        """
        params = {
            "resource_id": self.resource_id,
            "offset": offset,
            "limit": self.batch_size
        }
        last_exception: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                logger.debug(
                    f"Fetching {self.resource_id} offset={offset} "
                    f"(attempt {attempt}/{self.max_retries})"
                )

                response = await client.get(self.base_url, params=params)
                self._check_status(response, offset)

                page = CKANResponse.model_validate(response.json())
                if not page.success or page.result is None:
                    raise APIExtractionError(
                        f"API returned success: false for resource {self.resource_id}",
                        context={"resource_id": self.resource_id, "offset": offset}
                    )
                return page.result

            except (AuthenticationError, ResourceNotFoundError):
                # Non-retryable errors - re-raise immediately
                raise

            except (httpx.HTTPError, ValueError, ValidationError, APIExtractionError) as e:
                last_exception = e
                logger.warning(
                    f"Attempt {attempt} failed for resource {self.resource_id}: {e}"
                )

                if attempt < self.max_retries:
                    delay = self._backoff(attempt)
                    if isinstance(e, RateLimitError) and e.retry_after:
                        delay = max(delay, e.retry_after)
                    logger.info(f"Retrying in {delay} seconds...")
                    await asyncio.sleep(delay)

        raise NetworkError(
            f"Failed to fetch data after {self.max_retries} attempts",
            context={
                "api_url": self.base_url,
                "resource_id": self.resource_id,
                "offset": offset,
                "retry_count": self.max_retries
            },
            original_exception=last_exception
        )

    async def load(self, start_offset: int = 0) -> LoadResult:
        """
        Page through the resource from ``start_offset``.

        Returns:
            LoadResult; ``next_offset`` is the offset after the last record
            received and is what the caller checkpoints.
        """
        transformer = self.build_transformer()
        result = LoadResult(start_offset=start_offset, next_offset=start_offset)

        if not transformer.is_configured:
            result.warnings.append(transformer.warning)
            return result

        offset = start_offset
        logger.info(f"Starting API load for {self.category} from offset {offset}")

        headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers=headers,
            transport=self.transport
        ) as client:
            while True:
                page = await self._fetch_page(client, offset)
                result.pages += 1

                logger.info(
                    f"Fetched {len(page.records)} records (offset: {offset}, total: {page.total})"
                )

                if not page.records:
                    break

                records, failed = self.transform_rows(transformer, page.records, start_index=offset)
                result.records.extend(records)
                result.rows_read += len(page.records)
                result.rows_failed += failed

                offset += len(page.records)
                if offset >= page.total:
                    break

                await asyncio.sleep(self.page_delay)

        result.next_offset = offset
        logger.info(
            f"Completed API load for {self.category}. "
            f"Total records: {len(result.records)} ({result.pages} pages)"
        )
        return result
