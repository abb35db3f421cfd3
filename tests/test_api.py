import pytest
from fastapi.testclient import TestClient

from job_ingest.api.main import create_app
from tests.factories import StubFetcher, make_job


@pytest.fixture
def client(test_settings):
    fetcher = StubFetcher(
        {
            "backend": [make_job(), make_job(title="Platform Engineer")],
            "data": [make_job(title="Data Analyst", company="Globex")],
        },
        failing=["broken"],
    )
    app = create_app(config=test_settings, fetcher=fetcher)
    with TestClient(app) as test_client:
        yield test_client


def _wait_until_finished(client, session_id):
    """Block until background runs finish, then return the session snapshot"""
    client.portal.call(client.app.state.ingestion_service.wait_for_pending)
    return client.get(f"/api/ingestions/{session_id}").json()


def test_health_check(client):
    """Test health endpoint"""
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_start_ingestion_returns_immediately(client):
    response = client.post("/api/ingestions", json={"buckets": ["backend", "data"], "country": "India"})

    assert response.status_code == 202
    body = response.json()
    assert body["session_id"]
    assert body["status"] == "in_progress"
    assert body["buckets_requested"] == ["backend", "data"]
    assert body["filter_by_country"] is True
    assert body["started_at"]


def test_poll_session_until_completed(client):
    session_id = client.post("/api/ingestions", json={"buckets": ["backend", "data"]}).json()["session_id"]

    body = _wait_until_finished(client, session_id)

    assert body["status"] == "completed"
    assert body["progress"] == 100.0
    assert body["country_code"] == "in"
    assert body["triggered_by"] == "admin"
    assert body["buckets_completed"] == ["backend", "data"]
    assert body["new_records_added"] == 3
    assert body["verification_status"] == "passed"


def test_failing_bucket_reported_as_partial(client):
    session_id = client.post("/api/ingestions", json={"buckets": ["backend", "broken"]}).json()["session_id"]

    body = _wait_until_finished(client, session_id)

    assert body["status"] == "partial"
    assert body["buckets_failed"] == ["broken"]
    assert body["progress"] == 50.0


def test_unknown_session_is_404(client):
    response = client.get("/api/ingestions/does-not-exist")
    assert response.status_code == 404


def test_empty_buckets_rejected(client):
    response = client.post("/api/ingestions", json={"buckets": []})
    assert response.status_code == 422


def test_list_sessions(client):
    first = client.post("/api/ingestions", json={"buckets": ["backend"]}).json()["session_id"]
    _wait_until_finished(client, first)
    second = client.post("/api/ingestions", json={"buckets": ["broken"]}).json()["session_id"]
    _wait_until_finished(client, second)

    response = client.get("/api/ingestions", params={"limit": 10})
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert {session["session_id"] for session in body["sessions"]} == {first, second}

    partial = client.get("/api/ingestions", params={"status": "partial"}).json()
    assert [session["session_id"] for session in partial["sessions"]] == [second]

    assert client.get("/api/ingestions", params={"status": "bogus"}).status_code == 422
