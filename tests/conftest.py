"""
Pytest configuration and fixtures
"""

import os
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from models.base import Base
from schemas.sources import (
    ApiMappingConfig,
    ApiSourceConfig,
    EtlConfig,
    EtlSettings,
    FileMappingConfig,
    FileSourceConfig,
)

# Test database URL; defaults to a throwaway SQLite file per test
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL")

API_BASE_URL = "https://data.example.go.id/api/3/action/datastore_search"


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create test database engine"""
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'etl_test.db'}"
    engine = create_async_engine(
        url,
        echo=False,
        poolclass=NullPool,  # Disable connection pooling for tests
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables after test
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def etl_settings():
    """Fast settings: no real sleeping is expected, but keep delays tiny anyway"""
    return EtlSettings(
        base_url=API_BASE_URL,
        batch_size=2,
        max_retries=3,
        retry_delay=1.0,
        timeout=5.0,
        page_delay=0.0,
    )


@pytest.fixture
def wide_api_source():
    """API source in wide mode (one column per year)"""
    return ApiSourceConfig(
        kategori="kependudukan",
        resource_id="res-wide-001",
        mapping=ApiMappingConfig(
            elemen_field="Elemen",
            year_column_regex=r"Data (\d{4})",
        ),
    )


@pytest.fixture
def long_api_source():
    """API source in long mode (one row per element/year)"""
    return ApiSourceConfig(
        kategori="pendidikan",
        resource_id="res-long-001",
        mapping=ApiMappingConfig(
            elemen_field="Elemen",
            tahun_field="Tahun",
            nilai_field="Nilai",
            satuan_field="Satuan",
        ),
    )


@pytest.fixture
def mock_wide_records():
    """Mock CKAN records in wide layout"""
    return [
        {
            "_id": 1,
            "Elemen": "Jumlah Penduduk",
            "Data 2019": "1.200",
            "Data 2020": "1350",
            "Satuan": "Orang",
        },
        {
            "_id": 2,
            "Elemen": "Jumlah Rumah Tangga",
            "Data 2019": "300",
            "Data 2020": "1,310",
            "Satuan": "KK",
        },
        {
            "_id": 3,
            "Elemen": "Luas Wilayah",
            "Data 2019": "12.5",
            "Data 2020": "12.75",
            "Satuan": "km2",
        },
    ]


@pytest.fixture
def mock_long_records():
    """Mock CKAN records in long layout"""
    return [
        {"_id": 1, "Elemen": "Jumlah Sekolah", "Tahun": "2019", "Nilai": "120", "Satuan": "Unit"},
        {"_id": 2, "Elemen": "Jumlah Sekolah", "Tahun": "2020", "Nilai": "125", "Satuan": "Unit"},
        {"_id": 3, "Elemen": "Jumlah Guru", "Tahun": "2020", "Nilai": "1.540", "Satuan": "Orang"},
        {"_id": 4, "Elemen": "Jumlah Guru", "Tahun": "2021", "Nilai": "1.602", "Satuan": "Orang"},
    ]


def write_csv(path, rows, header=("Elemen", "Tahun", "Nilai", "Satuan"), delimiter=","):
    lines = [delimiter.join(header)] if header else []
    lines.extend(delimiter.join(str(cell) for cell in row) for row in rows)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def csv_rows():
    """Fifty long-layout data rows"""
    return [
        (f"Indikator {i:02d}", 2000 + (i % 20), f"{i * 10}", "Unit")
        for i in range(50)
    ]


@pytest.fixture
def csv_file(tmp_path, csv_rows):
    return write_csv(tmp_path / "indikator.csv", csv_rows)


@pytest.fixture
def file_source(csv_file):
    return FileSourceConfig(
        kategori="statistik",
        file_path=str(csv_file),
        mapping=FileMappingConfig(
            elemen_field="Elemen",
            tahun_field="Tahun",
            nilai_field="Nilai",
            satuan_field="Satuan",
        ),
    )


@pytest.fixture
def etl_config(etl_settings, wide_api_source, long_api_source, file_source):
    return EtlConfig(
        settings=etl_settings,
        sources=[wide_api_source, long_api_source],
        csv_sources=[file_source],
    )


class FakeCKAN:
    """
    In-process CKAN datastore_search endpoint for httpx.MockTransport.

    Serves ``records`` by offset/limit and keeps every request it saw.
    ``failures`` is a list of responses (or exceptions) returned before
    the real pages, one per request.
    """

    def __init__(self, records, failures=None, total=None):
        self.records = records
        self.failures = list(failures or [])
        self.total = len(records) if total is None else total
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)

        if self.failures:
            failure = self.failures.pop(0)
            if isinstance(failure, Exception):
                raise failure
            return failure

        offset = int(request.url.params.get("offset", 0))
        limit = int(request.url.params.get("limit", 100))
        return httpx.Response(200, json={
            "success": True,
            "result": {
                "resource_id": request.url.params.get("resource_id"),
                "records": self.records[offset:offset + limit],
                "total": self.total,
                "limit": limit,
                "offset": offset,
            },
        })

    @property
    def offsets(self):
        return [int(r.url.params["offset"]) for r in self.requests]

    def transport(self):
        return httpx.MockTransport(self)


@pytest.fixture
def fake_ckan():
    """Factory: fake_ckan(records, failures=None, total=None) -> FakeCKAN"""
    return FakeCKAN


@pytest.fixture
def make_csv():
    """Factory: make_csv(path, rows, header=..., delimiter=",") -> path"""
    return write_csv
