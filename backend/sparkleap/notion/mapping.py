# backend/sparkleap/notion/mapping.py

"""
Notion ページ → TaskRecord への正規化ロジック。

PropertyMapping に従って Notion のプロパティを読み取る。
マッピング未設定の項目や、ページ側に存在しないプロパティは None として扱い、
例外は投げない。
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sparkleap.utils.timeutils import parse_iso_datetime

from .schemas import PropertyMapping, TaskRecord


def _prop(properties: Dict[str, Any], name: Optional[str]) -> Dict[str, Any]:
    """
    マッピングされたプロパティを取り出す。未設定・欠損・型違いは空 dict。
    """
    if not name:
        return {}
    prop = properties.get(name)
    return prop if isinstance(prop, dict) else {}


def _extract_title(prop: Dict[str, Any]) -> Optional[str]:
    """
    title / rich_text プロパティからプレーンテキストを抽出する。
    複数の断片がある場合は連結する。
    """
    for key in ("title", "rich_text"):
        parts = prop.get(key)
        if isinstance(parts, list) and parts:
            texts = [
                p.get("plain_text")
                for p in parts
                if isinstance(p, dict) and isinstance(p.get("plain_text"), str)
            ]
            if texts:
                return "".join(texts)
    return None


def _extract_select_name(prop: Dict[str, Any]) -> Optional[str]:
    """
    status / select プロパティから name を抽出する。status 型を優先する。
    """
    for key in ("status", "select"):
        value = prop.get(key)
        if isinstance(value, dict):
            name = value.get("name")
            if isinstance(name, str):
                return name
    return None


def _extract_number(prop: Dict[str, Any]) -> Optional[float]:
    value = prop.get("number")
    # bool は int のサブクラスなので除外する
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return None


def _extract_multi_select(prop: Dict[str, Any]) -> Optional[List[str]]:
    options = prop.get("multi_select")
    if not isinstance(options, list):
        return None
    return [
        o["name"] for o in options if isinstance(o, dict) and isinstance(o.get("name"), str)
    ]


def _extract_people(prop: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
    people = prop.get("people")
    if not isinstance(people, list):
        return None
    return [p for p in people if isinstance(p, dict) and isinstance(p.get("id"), str)]


def _extract_date(prop: Dict[str, Any], *, prefer_end: bool = False) -> Optional[datetime]:
    """
    date プロパティから日時を抽出する。

    期日は範囲指定の場合 end を優先し、それ以外は start を使う。
    """
    date = prop.get("date")
    if not isinstance(date, dict):
        return None

    if prefer_end:
        end = parse_iso_datetime(date.get("end"))
        if end is not None:
            return end
    return parse_iso_datetime(date.get("start"))


def _extract_first_relation(prop: Dict[str, Any]) -> Optional[str]:
    relations = prop.get("relation")
    if isinstance(relations, list):
        for rel in relations:
            if isinstance(rel, dict) and isinstance(rel.get("id"), str):
                return rel["id"]
    return None


def extract_assignees(
    page: Dict[str, Any],
    mapping: Optional[PropertyMapping],
) -> List[Dict[str, Any]]:
    """
    担当者プロパティの people オブジェクトをそのまま返す（ディレクトリ登録用）。
    """
    if mapping is None:
        return []
    properties = page.get("properties") or {}
    return _extract_people(_prop(properties, mapping.assignee)) or []


def map_page_to_task(
    page: Dict[str, Any],
    mapping: Optional[PropertyMapping],
    *,
    table_id: str,
    user_id: str,
) -> TaskRecord:
    """
    Notion ページ 1 件を TaskRecord に変換する。

    created_at / last_modified_at / archived はページ自体のメタ情報から取る。
    """
    m = mapping or PropertyMapping()
    properties: Dict[str, Any] = page.get("properties") or {}
    if not isinstance(properties, dict):
        properties = {}

    people = _extract_people(_prop(properties, m.assignee))

    return TaskRecord(
        record_id=str(page.get("id", "")),
        table_id=table_id,
        user_id=user_id,
        title=_extract_title(_prop(properties, m.title)),
        status=_extract_select_name(_prop(properties, m.status)),
        assignee_ids=[p["id"] for p in people] if people is not None else None,
        created_at=parse_iso_datetime(page.get("created_time")),
        due_at=_extract_date(_prop(properties, m.due_date), prefer_end=True),
        completed_at=_extract_date(_prop(properties, m.completed_at)),
        priority=_extract_select_name(_prop(properties, m.priority)),
        estimate=_extract_number(_prop(properties, m.estimate)),
        tags=_extract_multi_select(_prop(properties, m.tags)),
        last_modified_at=parse_iso_datetime(page.get("last_edited_time")),
        archived=bool(page.get("archived") or page.get("in_trash")),
        parent_task_id=_extract_first_relation(_prop(properties, m.parent_task)),
    )
