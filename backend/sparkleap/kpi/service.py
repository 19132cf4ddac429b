# backend/sparkleap/kpi/service.py

"""
TaskRecord を元に、週次の実行 KPI を算出するサービス。

責務:
- 対象週（月曜 00:00 UTC 〜 +7 日）の決定
- 完了数 / 期限内完了率 / サイクルタイム中央値 / WIP / 期限切れ / タグ別内訳の算出
- WeeklyExecutionSnapshot として upsert

ここでは外部 API 呼び出しは行わず、永続化層の読み書きと集計ロジックに限定する。
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from sparkleap.notion.schemas import TaskRecord
from sparkleap.storage.repository import TaskRepository
from sparkleap.utils.timeutils import ensure_utc, start_of_week_utc, utcnow

from .schemas import WeeklyExecutionSnapshot

logger = logging.getLogger(__name__)

_SECONDS_PER_DAY = 86400.0


def lower_median(values: Sequence[float]) -> Optional[float]:
    """
    昇順に並べて index = n // 2 の要素を返す。空なら None。

    偶数個の場合は平均を取らず、上側の中央要素になる（[1, 3] → 3）。
    """
    if not values:
        return None
    ordered = sorted(values)
    return ordered[len(ordered) // 2]


class KPIService:
    """
    週次 KPI の集計サービス。

    - 同じ週・同じデータで何度実行しても同じスナップショットになる（冪等）
    - now を注入できるので、期限切れ判定もテストで固定できる
    """

    def __init__(self, repository: TaskRepository) -> None:
        self._repository = repository

    def _load_universe(self, user_id: str, scope_table_id: Optional[str]) -> List[TaskRecord]:
        if scope_table_id:
            return [
                t for t in self._repository.get_tasks_by_table(scope_table_id)
                if t.user_id == user_id
            ]
        return self._repository.get_tasks_by_user(user_id)

    @staticmethod
    def _cycle_time_days(task: TaskRecord) -> Optional[float]:
        """
        created_at → completed_at の日数（符号付き）。どちらかが欠けている場合は None。
        """
        created = ensure_utc(task.created_at)
        completed = ensure_utc(task.completed_at)
        if created is None or completed is None:
            return None

        # Notion の日付のみの完了日は 00:00 UTC になるため、負の値もそのまま扱う
        return (completed - created).total_seconds() / _SECONDS_PER_DAY

    def compute_weekly_kpis(
        self,
        user_id: str,
        week_reference: Optional[datetime] = None,
        scope_table_id: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> WeeklyExecutionSnapshot:
        """
        指定ユーザー・週の KPI を計算し、スナップショットとして保存して返す。

        :param week_reference: 対象週に含まれる任意の日時（省略時は now）
        :param scope_table_id: 指定時はそのデータベースのタスクだけを対象にする
        :param now: 期限切れ判定に使う現在時刻（テスト用）
        """
        now_utc = ensure_utc(now) or utcnow()
        week_start = start_of_week_utc(week_reference or now_utc)
        week_end = week_start + timedelta(days=7)

        tasks = self._load_universe(user_id, scope_table_id)

        completed_this_week: List[TaskRecord] = []
        for task in tasks:
            completed = ensure_utc(task.completed_at)
            if completed is not None and week_start <= completed < week_end:
                completed_this_week.append(task)

        # 期限なしは期限内扱い
        on_time = 0
        for task in completed_this_week:
            due = ensure_utc(task.due_at)
            if due is None or ensure_utc(task.completed_at) <= due:
                on_time += 1
        on_time_rate = on_time / len(completed_this_week) if completed_this_week else 0.0

        cycle_times = [
            days
            for days in (self._cycle_time_days(t) for t in completed_this_week)
            if days is not None
        ]
        median_cycle_time_days = lower_median(cycle_times)

        wip_count = sum(1 for t in tasks if t.completed_at is None and not t.archived)

        overdue_open = 0
        for task in tasks:
            due = ensure_utc(task.due_at)
            if task.completed_at is None and due is not None and due < now_utc:
                overdue_open += 1

        focus: Counter = Counter()
        for task in completed_this_week:
            for tag in task.tags or []:
                focus[tag] += 1

        snapshot = WeeklyExecutionSnapshot(
            user_id=user_id,
            week_start=week_start,
            scope_table_id=scope_table_id,
            completed_tasks=len(completed_this_week),
            on_time_rate=on_time_rate,
            median_cycle_time_days=median_cycle_time_days,
            wip_count=wip_count,
            overdue_open=overdue_open,
            focus_breakdown=dict(focus),
        )

        logger.info(
            "Computed weekly KPIs. user_id=%s week_start=%s scope=%s completed=%d wip=%d",
            user_id,
            week_start.isoformat(),
            scope_table_id,
            snapshot.completed_tasks,
            snapshot.wip_count,
        )
        return self._repository.upsert_snapshot(snapshot)
