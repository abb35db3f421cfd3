import pytest
import pytest_asyncio

from job_ingest.database.operations import Database
from job_ingest.utils.config import Settings


@pytest.fixture
def test_settings() -> Settings:
    """Settings with delays zeroed so retries and pagination run instantly"""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        jsearch_api_key="test-key",
        request_delay_ms=0,
        retry_base_delay_ms=0,
        max_retries=3,
        ingestion_num_pages=2,
    )


@pytest_asyncio.fixture
async def database():
    """Fresh in-memory database per test"""
    db = Database("sqlite+aiosqlite:///:memory:")
    await db.connect()
    yield db
    await db.disconnect()
