# backend/sparkleap/notion/source.py

"""
ページング可能なリモートコレクションの抽象。

Sync Engine は list_page() だけに依存するので、
テストではネットワークを使わないダミー実装を差し込める。
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol

from sparkleap.utils.timeutils import to_iso

from .client import NotionClient


@dataclass
class TaskPage:
    """list_page() の 1 ページ分の結果。"""

    records: List[Dict[str, Any]] = field(default_factory=list)
    has_more: bool = False
    next_cursor: Optional[str] = None


class TaskPageSource(Protocol):
    """
    リモートコレクションの最小インターフェース。

    modified_after が指定された場合、それより厳密に後に更新された
    レコードだけを返すこと。
    """

    def list_page(
        self,
        modified_after: Optional[datetime],
        cursor: Optional[str],
    ) -> TaskPage:  # pragma: no cover - Protocol
        ...


# (access_token, table_id) -> TaskPageSource
SourceFactory = Callable[[str, str], TaskPageSource]


def build_last_edited_filter(modified_after: Optional[datetime]) -> Optional[Dict[str, Any]]:
    """
    Notion の timestamp フィルタ（last_edited_time > modified_after）を組み立てる。
    """
    if modified_after is None:
        return None
    return {
        "timestamp": "last_edited_time",
        "last_edited_time": {"after": to_iso(modified_after)},
    }


class NotionDatabaseSource:
    """
    1 つの Notion データベースを TaskPageSource として扱うアダプタ。
    """

    def __init__(self, client: NotionClient, database_id: str) -> None:
        self._client = client
        self._database_id = database_id

    def list_page(
        self,
        modified_after: Optional[datetime],
        cursor: Optional[str],
    ) -> TaskPage:
        data = self._client.query_database(
            self._database_id,
            filter_=build_last_edited_filter(modified_after),
            start_cursor=cursor,
        )
        return TaskPage(
            records=list(data.get("results") or []),
            has_more=bool(data.get("has_more")),
            next_cursor=data.get("next_cursor") or None,
        )


def notion_source_factory(token: str, table_id: str) -> TaskPageSource:
    """デフォルトの SourceFactory。"""
    return NotionDatabaseSource(NotionClient(token), table_id)
