import pytest

from job_ingest.database.operations import Database


def _job_values(company_id: int, **overrides) -> dict:
    values = {
        "title": "Backend Engineer",
        "company_id": company_id,
        "company": "Initech",
        "location": "Bangalore, KA, India",
        "city": "Bangalore",
        "country": "India",
        "source_label": "API",
        "session_id": "session-1",
        "bucket": "backend",
    }
    values.update(overrides)
    return values


@pytest.mark.asyncio
async def test_connect_creates_tables(database):
    """Test database connection"""
    assert database.engine is not None
    assert database.session_maker is not None
    assert await database.count_jobs() == 0


@pytest.mark.asyncio
async def test_operations_require_connect():
    with pytest.raises(RuntimeError):
        await Database("sqlite+aiosqlite:///:memory:").count_jobs()


@pytest.mark.asyncio
async def test_company_create_and_find(database):
    """Test company creation"""
    assert await database.find_company("Initech") is None

    company = await database.create_company("Initech", {"source": "API", "created_via": "ingestion"})
    found = await database.find_company("Initech")

    assert company.id is not None
    assert found.id == company.id
    assert found.meta == {"source": "API", "created_via": "ingestion"}
    assert await database.find_company("initech") is None


@pytest.mark.asyncio
async def test_job_insert_then_update(database):
    company = await database.create_company("Initech")

    inserted = await database.upsert_job(_job_values(company.id, description="v1"))
    assert inserted.status == "published"

    found = await database.find_job("Backend Engineer", company.id, "Bangalore, KA, India")
    assert found.id == inserted.id

    await database.upsert_job(_job_values(company.id, description="v2", session_id="session-2"), existing_id=found.id)

    assert await database.count_jobs() == 1
    assert await database.count_jobs_by_session("session-1") == 0
    assert await database.count_jobs_by_session("session-2") == 1
    updated = (await database.list_jobs_by_session("session-2"))[0]
    assert updated.description == "v2"


@pytest.mark.asyncio
async def test_find_job_requires_full_identity(database):
    company = await database.create_company("Initech")
    await database.upsert_job(_job_values(company.id))

    assert await database.find_job("Backend Engineer", company.id, "Pune, MH, India") is None
    assert await database.find_job("Frontend Engineer", company.id, "Bangalore, KA, India") is None


@pytest.mark.asyncio
async def test_update_missing_job_raises(database):
    company = await database.create_company("Initech")
    with pytest.raises(LookupError):
        await database.upsert_job(_job_values(company.id), existing_id=999)


@pytest.mark.asyncio
async def test_list_jobs_by_session_limit(database):
    company = await database.create_company("Initech")
    for index in range(5):
        await database.upsert_job(_job_values(company.id, title=f"Engineer {index}"))

    assert len(await database.list_jobs_by_session("session-1")) == 3
    assert len(await database.list_jobs_by_session("session-1", limit=10)) == 5


@pytest.mark.asyncio
async def test_session_lifecycle(database):
    record = await database.create_session(
        session_id="s-1",
        buckets_requested=["backend", "data"],
        country_code="in",
        original_country_name="India",
        triggered_by="admin",
    )
    assert record.status == "in_progress"
    assert record.buckets_completed == []
    assert record.total_api_calls == 0

    await database.update_session("s-1", {"buckets_completed": ["backend"], "total_api_calls": 4})
    await database.update_session("s-1", {"status": "completed"})

    stored = await database.get_session("s-1")
    assert stored.status == "completed"
    assert stored.buckets_completed == ["backend"]
    assert stored.total_api_calls == 4
    assert await database.get_session("missing") is None


@pytest.mark.asyncio
async def test_list_and_count_sessions(database):
    for index, status in enumerate(["completed", "partial", "completed"]):
        await database.create_session(
            session_id=f"s-{index}", buckets_requested=["backend"], country_code="in",
        )
        await database.update_session(f"s-{index}", {"status": status})

    assert await database.count_sessions() == 3
    assert await database.count_sessions(status="completed") == 2
    partial = await database.list_sessions(status="partial")
    assert [session.session_id for session in partial] == ["s-1"]
    assert len(await database.list_sessions(limit=2)) == 2
    assert len(await database.list_sessions(limit=2, offset=2)) == 1


@pytest.mark.asyncio
async def test_dedup_report_queries(database):
    company = await database.create_company("Initech")
    await database.upsert_job(_job_values(company.id))
    await database.upsert_job(_job_values(company.id, title="Data Analyst", source_label="Fallback"))

    assert await database.count_jobs_by_source_label() == {"API": 1, "Fallback": 1}
    assert await database.find_duplicate_identities() == []

    # upsert_job without an existing id always inserts
    await database.upsert_job(_job_values(company.id))
    dups = await database.find_duplicate_identities()
    assert dups == [
        {"title": "Backend Engineer", "company_id": company.id, "location": "Bangalore, KA, India", "count": 2}
    ]
