# backend/tests/test_notion_router.py

from unittest.mock import patch

from fastapi.testclient import TestClient

from sparkleap.credentials.schemas import SourceType
from sparkleap.main import create_app
from sparkleap.notion.client import NotionAuthError
from sparkleap.notion.router import get_sync_service
from sparkleap.notion.schemas import DatabaseDescriptor, PropertyMapping
from sparkleap.notion.service import NotionSyncService
from sparkleap.storage.state import get_credential_store, get_repository
from sparkleap.usage.limiter import UsageLimiter

from helpers import FakePageSource, notion_page

MAPPING = PropertyMapping(title="Name", status="Status", tags="Tags", completed_at="Completed")


def create_test_client(source=None, usage_limiter=None) -> TestClient:
    app = create_app(usage_limiter=usage_limiter)

    if source is not None:
        def _override() -> NotionSyncService:
            return NotionSyncService(
                get_repository(),
                get_credential_store(),
                source_factory=lambda token, table_id: source,
            )

        app.dependency_overrides[get_sync_service] = _override

    return TestClient(app)


def _register_source(token: str = "notion-token", mapping=MAPPING) -> str:
    record = get_credential_store().create("user-1", SourceType.NOTION, {"token": token})
    get_repository().upsert_descriptor(
        DatabaseDescriptor(id="db-1", user_id="user-1", property_mapping=mapping)
    )
    return record.source_id


def test_sync_success():
    source_id = _register_source()
    source = FakePageSource([[notion_page("p-1", "2024-01-05T00:00:00.000Z", title="A")]])
    client = create_test_client(source)

    resp = client.post("/notion/sync", json={"source_id": source_id, "mode": "backfill"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["upserted_count"] == 1
    assert body["skipped_tables"] == []
    assert get_repository().get_tasks_by_table("db-1")[0].title == "A"


def test_sync_unknown_source_returns_404():
    client = create_test_client(FakePageSource([]))

    resp = client.post("/notion/sync", json={"source_id": "missing"})

    assert resp.status_code == 404


def test_sync_without_mapping_returns_400():
    source_id = _register_source(mapping=None)
    client = create_test_client(FakePageSource([]))

    resp = client.post("/notion/sync", json={"source_id": source_id})

    assert resp.status_code == 400


def test_sync_auth_error_returns_401():
    source_id = _register_source()
    source = FakePageSource([], mode="error", error=NotionAuthError("unauthorized"))
    client = create_test_client(source)

    resp = client.post("/notion/sync", json={"source_id": source_id})

    assert resp.status_code == 401


def test_sync_unexpected_error_returns_500():
    source_id = _register_source()
    client = create_test_client()

    with patch(
        "sparkleap.notion.service.NotionSyncService.trigger_sync",
        side_effect=Exception("unexpected error"),
    ):
        resp = client.post("/notion/sync", json={"source_id": source_id})

    assert resp.status_code == 500


def test_sync_rate_limited_returns_429():
    source_id = _register_source()
    client = create_test_client(
        FakePageSource([[]]),
        usage_limiter=UsageLimiter(daily_limit=50, hourly_limit=1),
    )

    first = client.post("/notion/sync", json={"source_id": source_id})
    second = client.post("/notion/sync", json={"source_id": source_id})

    assert first.status_code == 200
    assert second.status_code == 429


def test_unknown_source_does_not_consume_sync_quota():
    limiter = UsageLimiter(daily_limit=50, hourly_limit=1)
    source_id = _register_source()
    client = create_test_client(FakePageSource([[]]), usage_limiter=limiter)

    assert client.post("/notion/sync", json={"source_id": "missing"}).status_code == 404
    assert client.post("/notion/sync", json={"source_id": "missing"}).status_code == 404
    assert limiter.get_stats().total_users == 0

    resp = client.post("/notion/sync", json={"source_id": source_id})

    assert resp.status_code == 200
    assert limiter.get_stats().total_users == 1


def test_select_databases_and_save_mapping():
    record = get_credential_store().create("user-1", SourceType.NOTION, {"token": "t"})
    client = create_test_client()

    resp = client.post(
        "/notion/databases/select",
        json={
            "source_id": record.source_id,
            "user_id": "user-1",
            "selections": [{"id": "db-1", "name": "Tasks"}, {"id": "db-2"}],
        },
    )
    assert resp.status_code == 200
    assert resp.json()["count"] == 2

    resp = client.put(
        "/notion/mapping",
        json={"database_id": "db-1", "mapping": {"title": "Name", "status": "Status"}},
    )
    assert resp.status_code == 200
    assert resp.json() == {"success": True}

    descriptor = get_repository().get_descriptor("db-1")
    assert descriptor.display_name == "Tasks"
    assert descriptor.property_mapping.title == "Name"
    assert get_repository().get_descriptor("db-2").display_name == "Untitled"


def test_save_mapping_unknown_database_returns_404():
    client = create_test_client()

    resp = client.put("/notion/mapping", json={"database_id": "nope", "mapping": {}})

    assert resp.status_code == 404


def test_control_stop_requires_source_id():
    client = create_test_client()

    resp = client.post("/notion/control", json={"action": "stop", "user_id": "user-1"})

    assert resp.status_code == 400


def test_seed_then_weekly_kpis():
    client = create_test_client()

    resp = client.post("/notion/mock/seed", json={"user_id": "demo", "tasks_count": 12})
    assert resp.status_code == 200
    assert resp.json()["seeded"] == 12
    assert resp.json()["database_id"] == "mock-db-1"

    resp = client.get("/kpi/weekly", params={"user_id": "demo"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["user_id"] == "demo"
    # i % 3 == 0 の 4 件が完了済み
    assert body["wip_count"] == 8
