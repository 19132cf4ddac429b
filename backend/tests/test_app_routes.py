# backend/tests/test_app_routes.py

from fastapi.testclient import TestClient

from sparkleap.main import create_app
from sparkleap.storage.state import get_credential_store
from sparkleap.usage.limiter import UsageLimiter


def create_test_client(usage_limiter=None) -> TestClient:
    return TestClient(create_app(usage_limiter=usage_limiter))


def test_health():
    client = create_test_client()

    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_datasource_lifecycle_never_returns_secrets():
    client = create_test_client()

    resp = client.post(
        "/datasources",
        json={"user_id": "user-1", "source_type": "notion", "credentials": {"token": "secret"}},
    )
    assert resp.status_code == 201
    created = resp.json()
    assert "secret" not in resp.text
    assert created["is_active"] is True

    record = get_credential_store().get(created["source_id"])
    assert get_credential_store().decrypt_payload(record) == {"token": "secret"}

    resp = client.get("/datasources", params={"user_id": "user-1"})
    assert resp.status_code == 200
    assert resp.json()["count"] == 1

    resp = client.delete(f"/datasources/{created['source_id']}")
    assert resp.status_code == 204

    resp = client.delete(f"/datasources/{created['source_id']}")
    assert resp.status_code == 404


def test_datasource_rejects_empty_credentials():
    client = create_test_client()

    resp = client.post(
        "/datasources",
        json={"user_id": "user-1", "source_type": "notion", "credentials": {}},
    )

    assert resp.status_code == 400


def test_weekly_kpis_for_empty_user():
    client = create_test_client()

    resp = client.get(
        "/kpi/weekly",
        params={"user_id": "nobody", "week_reference": "2024-01-10T12:00:00Z"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["completed_tasks"] == 0
    assert body["on_time_rate"] == 0
    assert body["week_start"].startswith("2024-01-08T00:00:00")


def test_usage_stats_requires_admin_key(monkeypatch):
    monkeypatch.setenv("ADMIN_API_KEY", "test-admin-key")
    limiter = UsageLimiter()
    limiter.check_limit("user-1")
    client = create_test_client(usage_limiter=limiter)

    assert client.get("/usage-stats").status_code == 401
    assert client.get("/usage-stats", headers={"x-admin-key": "wrong"}).status_code == 401

    resp = client.get("/usage-stats", headers={"x-admin-key": "test-admin-key"})
    assert resp.status_code == 200
    assert resp.json()["total_users"] == 1
    assert resp.json()["total_requests"] == 1
