# backend/tests/test_notion_client.py

import json

import httpx
import pytest

from sparkleap.notion.client import (
    NotionAPIError,
    NotionAuthError,
    NotionClient,
    NotionClientError,
)
from sparkleap.notion.source import NotionDatabaseSource, build_last_edited_filter

from helpers import utc


def _json_response(status_code: int, data) -> httpx.Response:
    return httpx.Response(
        status_code=status_code,
        content=json.dumps(data).encode("utf-8"),
    )


def test_query_database_success(monkeypatch):
    client = NotionClient("dummy-token")
    captured = {}

    def fake_post(url, *args, **kwargs):
        captured["url"] = url
        captured["headers"] = kwargs["headers"]
        captured["json"] = kwargs["json"]
        return _json_response(
            200,
            {
                "results": [{"id": "page-1", "properties": {}}],
                "has_more": True,
                "next_cursor": "cursor-2",
            },
        )

    monkeypatch.setattr(httpx, "post", fake_post)

    data = client.query_database("db-1", start_cursor="cursor-1")

    assert data["results"][0]["id"] == "page-1"
    assert captured["url"].endswith("/databases/db-1/query")
    assert captured["headers"]["Authorization"] == "Bearer dummy-token"
    assert captured["json"]["start_cursor"] == "cursor-1"
    assert captured["json"]["page_size"] == 100
    assert "filter" not in captured["json"]


def test_query_database_401(monkeypatch):
    client = NotionClient("dummy-token")

    def fake_post(*args, **kwargs):
        return httpx.Response(status_code=401, content=b"")

    monkeypatch.setattr(httpx, "post", fake_post)

    with pytest.raises(NotionAuthError):
        client.query_database("db-1")


def test_query_database_500_is_api_error(monkeypatch):
    client = NotionClient("dummy-token")

    def fake_post(*args, **kwargs):
        return httpx.Response(status_code=502, content=b"bad gateway")

    monkeypatch.setattr(httpx, "post", fake_post)

    with pytest.raises(NotionAPIError):
        client.query_database("db-1")


def test_query_database_network_error(monkeypatch):
    client = NotionClient("dummy-token")

    def fake_post(*args, **kwargs):
        raise httpx.RequestError("network error", request=None)

    monkeypatch.setattr(httpx, "post", fake_post)

    with pytest.raises(NotionClientError):
        client.query_database("db-1")


def test_empty_token_is_rejected():
    with pytest.raises(NotionAuthError):
        NotionClient("")


def test_retrieve_database_uses_get(monkeypatch):
    client = NotionClient("dummy-token")

    def fake_get(url, *args, **kwargs):
        assert url.endswith("/databases/db-1")
        return _json_response(200, {"id": "db-1", "properties": {"Name": {"type": "title"}}})

    monkeypatch.setattr(httpx, "get", fake_get)

    meta = client.retrieve_database("db-1")
    assert meta["properties"]["Name"]["type"] == "title"


def test_database_source_translates_modified_after_into_filter(monkeypatch):
    captured = {}

    def fake_post(url, *args, **kwargs):
        captured["json"] = kwargs["json"]
        return _json_response(200, {"results": [], "has_more": False, "next_cursor": None})

    monkeypatch.setattr(httpx, "post", fake_post)

    source = NotionDatabaseSource(NotionClient("dummy-token"), "db-1")
    page = source.list_page(utc(2024, 1, 10), None)

    assert page.records == []
    assert page.has_more is False
    assert captured["json"]["filter"] == {
        "timestamp": "last_edited_time",
        "last_edited_time": {"after": "2024-01-10T00:00:00Z"},
    }


def test_build_last_edited_filter_none():
    assert build_last_edited_filter(None) is None
