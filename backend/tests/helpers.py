# backend/tests/helpers.py

"""
テスト共通のデータビルダーとダミー TaskPageSource。
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sparkleap.notion.source import TaskPage
from sparkleap.utils.timeutils import parse_iso_datetime


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def notion_page(
    page_id: str,
    last_edited: str,
    *,
    title: Optional[str] = None,
    status: Optional[str] = None,
    tags: Optional[List[str]] = None,
    created: str = "2024-01-01T00:00:00.000Z",
    due: Optional[str] = None,
    completed: Optional[str] = None,
    people: Optional[List[Dict[str, Any]]] = None,
    estimate: Optional[float] = None,
    archived: bool = False,
) -> Dict[str, Any]:
    """Notion の databases.query が返すページオブジェクトを組み立てる。"""
    properties: Dict[str, Any] = {}
    if title is not None:
        properties["Name"] = {"type": "title", "title": [{"plain_text": title}]}
    if status is not None:
        properties["Status"] = {"type": "status", "status": {"name": status}}
    if tags is not None:
        properties["Tags"] = {"type": "multi_select", "multi_select": [{"name": t} for t in tags]}
    if due is not None:
        properties["Due"] = {"type": "date", "date": {"start": due, "end": None}}
    if completed is not None:
        properties["Completed"] = {"type": "date", "date": {"start": completed}}
    if people is not None:
        properties["Assignee"] = {"type": "people", "people": people}
    if estimate is not None:
        properties["Estimate"] = {"type": "number", "number": estimate}

    return {
        "object": "page",
        "id": page_id,
        "created_time": created,
        "last_edited_time": last_edited,
        "archived": archived,
        "properties": properties,
    }


class FakePageSource:
    """
    ネットワークを使わない TaskPageSource。

    mode:
      - "ok": pages をカーソル順に返す（modified_after で厳密に後のものだけに絞る）
      - "error": 最初の呼び出しで error を投げる
      - "error_after_first": 1 ページ目を返した後、2 ページ目で error を投げる
    """

    def __init__(
        self,
        pages: List[List[Dict[str, Any]]],
        *,
        mode: str = "ok",
        error: Optional[Exception] = None,
    ) -> None:
        self._pages = pages
        self._mode = mode
        self._error = error
        self.calls: List[tuple] = []

    def list_page(self, modified_after, cursor) -> TaskPage:
        self.calls.append((modified_after, cursor))
        index = int(cursor) if cursor else 0

        if self._mode == "error" or (self._mode == "error_after_first" and index > 0):
            raise self._error

        records = self._pages[index] if self._pages else []
        if modified_after is not None:
            records = [
                r for r in records
                if parse_iso_datetime(r["last_edited_time"]) > modified_after
            ]

        has_more = index + 1 < len(self._pages)
        return TaskPage(
            records=records,
            has_more=has_more,
            next_cursor=str(index + 1) if has_more else None,
        )
