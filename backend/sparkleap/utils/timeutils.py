# backend/sparkleap/utils/timeutils.py

"""
UTC 日時まわりの小さなヘルパー。
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    naive な datetime が渡された場合でも UTC として扱う。
    aware な datetime は UTC に変換する。
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso_datetime(value: Any) -> Optional[datetime]:
    """
    ISO8601 文字列を UTC の datetime に変換する。

    - "Z" サフィックス / 日付のみ（"2024-01-10"）の両方を受け付ける
    - パースできない値は None（例外は投げない）
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str) or not value:
        return None

    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None

    return ensure_utc(parsed)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """UTC の ISO8601 文字列（"Z" サフィックス）に変換する。"""
    if value is None:
        return None
    return ensure_utc(value).isoformat().replace("+00:00", "Z")


def start_of_week_utc(reference: Optional[datetime] = None) -> datetime:
    """
    reference 以前で最も近い月曜 00:00 UTC を返す。
    """
    ref = ensure_utc(reference) or utcnow()
    day_start = datetime(ref.year, ref.month, ref.day, tzinfo=timezone.utc)
    return day_start - timedelta(days=day_start.weekday())
