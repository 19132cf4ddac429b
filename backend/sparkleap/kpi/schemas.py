# backend/sparkleap/kpi/schemas.py

"""
週次 KPI スナップショットのスキーマ定義。
"""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field


class WeeklyExecutionSnapshot(BaseModel):
    """
    1 ユーザー・1 週間（月曜 00:00 UTC 始まり）分の実行メトリクス。

    (user_id, week_start, scope_table_id) ごとに 1 件。再計算時は upsert。
    """

    user_id: str
    week_start: datetime = Field(..., description="週の開始（月曜 00:00 UTC）")
    scope_table_id: Optional[str] = Field(
        None,
        description="特定データベースに絞って集計した場合のデータベース ID",
    )
    completed_tasks: int = Field(0, ge=0)
    on_time_rate: float = Field(0.0, ge=0.0, le=1.0)
    median_cycle_time_days: Optional[float] = None
    wip_count: int = Field(0, ge=0)
    overdue_open: int = Field(0, ge=0)
    focus_breakdown: Dict[str, int] = Field(
        default_factory=dict,
        description="今週完了したタスクのタグ別件数",
    )
