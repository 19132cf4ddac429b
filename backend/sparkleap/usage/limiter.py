# backend/sparkleap/usage/limiter.py

"""
ユーザー単位の API 利用回数カウンタ。

モジュールレベルのグローバル状態は持たず、create_app() ごとに 1 インスタンスを
生成して app.state に保持する。テストでは reset() で明示的に初期化する。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from pydantic import BaseModel

from sparkleap.utils.timeutils import utcnow

from .config import get_usage_settings

logger = logging.getLogger(__name__)


class RateLimitDecision(BaseModel):
    allowed: bool
    remaining: int
    reset_time: Optional[datetime] = None


class UsageStats(BaseModel):
    total_users: int
    total_requests: int
    timestamp: datetime


@dataclass
class _UsageRecord:
    count: int
    last_seen: datetime


class UsageLimiter:
    """
    日次・時間単位の 2 つのウィンドウで利用回数を数える。

    - ウィンドウはいずれも UTC 基準（日: YYYY-MM-DD、時: YYYY-MM-DDTHH）
    - 上限に達したリクエストはカウントしない
    """

    def __init__(
        self,
        *,
        daily_limit: int = 50,
        hourly_limit: int = 10,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._daily_limit = daily_limit
        self._hourly_limit = hourly_limit
        self._clock = clock or utcnow
        self._usage: Dict[str, _UsageRecord] = {}

    @classmethod
    def from_settings(cls) -> "UsageLimiter":
        settings = get_usage_settings()
        return cls(daily_limit=settings.daily_limit, hourly_limit=settings.hourly_limit)

    @staticmethod
    def _daily_key(identifier: str, now: datetime) -> str:
        return f"{identifier}|{now:%Y-%m-%d}"

    @staticmethod
    def _hourly_key(identifier: str, now: datetime) -> str:
        return f"{identifier}|{now:%Y-%m-%dT%H}"

    def _count(self, key: str) -> int:
        record = self._usage.get(key)
        return record.count if record else 0

    def _increment(self, key: str, now: datetime) -> None:
        record = self._usage.get(key)
        if record is None:
            self._usage[key] = _UsageRecord(count=1, last_seen=now)
        else:
            record.count += 1
            record.last_seen = now

    def check_limit(self, identifier: Optional[str]) -> RateLimitDecision:
        """
        利用可否を判定し、許可した場合はカウンタを進める。
        """
        user = identifier or "anonymous"
        now = self._clock()
        self.cleanup(now)

        daily_key = self._daily_key(user, now)
        hourly_key = self._hourly_key(user, now)
        daily_used = self._count(daily_key)
        hourly_used = self._count(hourly_key)

        if daily_used >= self._daily_limit:
            tomorrow = now.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
            logger.info("Daily usage limit reached. user=%s", user)
            return RateLimitDecision(allowed=False, remaining=0, reset_time=tomorrow)

        if hourly_used >= self._hourly_limit:
            next_hour = now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
            logger.info("Hourly usage limit reached. user=%s", user)
            return RateLimitDecision(allowed=False, remaining=0, reset_time=next_hour)

        self._increment(daily_key, now)
        self._increment(hourly_key, now)

        remaining = min(
            self._daily_limit - (daily_used + 1),
            self._hourly_limit - (hourly_used + 1),
        )
        return RateLimitDecision(allowed=True, remaining=remaining)

    def cleanup(self, now: Optional[datetime] = None) -> int:
        """
        24 時間以上使われていないカウンタを破棄し、破棄件数を返す。
        """
        cutoff = (now or self._clock()) - timedelta(days=1)
        stale = [k for k, r in self._usage.items() if r.last_seen < cutoff]
        for key in stale:
            del self._usage[key]
        return len(stale)

    def get_stats(self) -> UsageStats:
        """
        ユーザー数と、日次カウンタ上のリクエスト総数を返す。
        """
        users = set()
        total = 0
        for key, record in self._usage.items():
            user, window = key.rsplit("|", 1)
            users.add(user)
            if "T" not in window:
                total += record.count
        return UsageStats(total_users=len(users), total_requests=total, timestamp=self._clock())

    def reset(self) -> None:
        """全カウンタを破棄する。"""
        self._usage.clear()
