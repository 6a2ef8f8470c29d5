"""Router tests through FastAPI's TestClient with the DB dependency overridden."""

import pytest
from datetime import date, datetime
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from gym_access.config import settings
from gym_access.database import get_db
from gym_access.main import app, is_open_path
from gym_access.models.raw_event import RawEvent
from gym_access.models.attendance_record import AttendanceRecord
from gym_access.models.access_integration import AccessIntegration
from gym_access.services.processing_queue import run_next_job
from gym_access.services.event_ingestor import FetchResult


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


WEBHOOK = "/api/v1/access-events/b-1/webhook"


class TestWebhookEndpoint:
    def test_accepts_event(self, client, db):
        resp = client.post(WEBHOOK, json={"eventId": "w-1", "eventType": "entry", "personId": "p-1"})
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert db.query(RawEvent).count() == 1

    def test_rejects_non_object_body(self, client):
        resp = client.post(WEBHOOK, content=b"not json", headers={"Content-Type": "application/json"})
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_storage_failure_returns_500(self, client):
        with patch("gym_access.services.event_ingestor.event_store.insert_event",
                   side_effect=OperationalError("INSERT", {}, Exception("db down"))):
            resp = client.post(WEBHOOK, json={"eventId": "w-1"})
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "message": "Failed to store event"}

    def test_batch_of_queue_messages(self, client, db):
        resp = client.post(WEBHOOK, json={"messages": [
            {"offset": 1, "data": {"eventId": "m-1", "eventType": "entry"}},
            {"offset": 2, "data": '{"eventId": "m-2", "eventType": "exit"}'},
        ]})
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "processed": 2, "failed": 0}
        assert db.query(RawEvent).count() == 2


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_webhook_to_attendance(self, client, db, add_mapping, monkeypatch):
        monkeypatch.setattr(settings, "PROCESSING_DELAY_SECONDS", 0)
        add_mapping("p-42", "member-7")

        resp = client.post(WEBHOOK, json={
            "eventType": "entry", "personId": "p-42", "eventTime": "2024-01-01T08:00:00Z",
            "deviceId": "d-1", "doorId": "door-1",
        })
        assert resp.status_code == 200
        raw = db.query(RawEvent).one()
        assert raw.processed is False

        job = await run_next_job(db)
        assert job.status == "succeeded"

        db.refresh(raw)
        assert raw.processed is True
        record = db.query(AttendanceRecord).one()
        assert record.member_id == "member-7"
        assert record.check_in == datetime(2024, 1, 1, 8, 0, 0)
        assert record.attendance_date == date(2024, 1, 1)

        listed = client.get("/api/v1/attendance", params={"member_id": "member-7"}).json()
        assert listed[0]["attendance_date"] == "2024-01-01"


class TestTriggerEndpoints:
    def test_process_endpoint_shape(self, client, make_event):
        make_event(person_id=None)
        resp = client.post("/api/v1/branches/b-1/access-events/process")
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "totalEvents": 1, "processedCount": 1}

    def test_fetch_without_integration_is_502(self, client):
        resp = client.post("/api/v1/branches/b-1/access-events/fetch")
        assert resp.status_code == 502
        body = resp.json()
        assert body["success"] is False
        assert body["fetched"] == 0

    def test_fetch_success_shape(self, client):
        with patch("gym_access.routers.events.ingest_from_fetch", new_callable=AsyncMock,
                   return_value=FetchResult(success=True, fetched=3, stored=0)):
            resp = client.post("/api/v1/branches/b-1/access-events/fetch")
        assert resp.json() == {"success": True, "fetched": 3, "stored": 0}

    def test_process_single_unknown_event_404(self, client):
        resp = client.post("/api/v1/branches/b-1/access-events/nope/process")
        assert resp.status_code == 404

    def test_list_events_filters(self, client, make_event):
        make_event(external_event_id="a")
        make_event(external_event_id="b", processed=True)
        resp = client.get("/api/v1/access-events", params={"processed": "false"})
        assert [e["external_event_id"] for e in resp.json()] == ["a"]


class TestIntegrationEndpoints:
    def test_put_then_get_hides_secret(self, client):
        body = {"api_url": "https://vendor.example", "app_key": "k", "app_secret": "s"}
        assert client.put("/api/v1/branches/b-1/integration", json=body).status_code == 200
        resp = client.get("/api/v1/branches/b-1/integration")
        assert resp.status_code == 200
        assert resp.json()["is_active"] is True
        assert "app_secret" not in resp.json()
        assert "access_token" not in resp.json()

    def test_put_clears_cached_vendor_token(self, client, db):
        db.add(AccessIntegration(branch_id="b-1", api_url="https://old.example", app_key="k", app_secret="s",
                                 access_token="tok", token_expires_at=datetime(2100, 1, 1)))
        db.commit()

        body = {"api_url": "https://vendor.example", "app_key": "k2", "app_secret": "s2"}
        assert client.put("/api/v1/branches/b-1/integration", json=body).status_code == 200

        integration = db.query(AccessIntegration).one()
        assert integration.access_token is None
        assert integration.token_expires_at is None

    def test_missing_integration_404(self, client):
        assert client.get("/api/v1/branches/zz/integration").status_code == 404


class TestJobsAndHealth:
    def test_job_visible_after_webhook(self, client):
        client.post(WEBHOOK, json={"eventId": "w-1"})
        jobs = client.get("/api/v1/processing-jobs").json()
        assert len(jobs) == 1
        assert client.get(f"/api/v1/processing-jobs/{jobs[0]['id']}").json()["status"] == "pending"

    def test_unknown_job_404(self, client):
        assert client.get("/api/v1/processing-jobs/999").status_code == 404

    def test_health_database_ok(self, client):
        resp = client.get("/api/v1/health", params={"check_vendors": "false"})
        assert resp.json()["database"] == "ok"


class TestOpenPaths:
    def test_webhook_and_health_are_open(self):
        assert is_open_path("/api/v1/access-events/b-1/webhook")
        assert is_open_path("/api/v1/health")

    def test_admin_paths_need_key(self):
        assert not is_open_path("/api/v1/branches/b-1/access-events/process")
        assert not is_open_path("/api/v1/access-events")
