# backend/sparkleap/kpi/router.py

"""
週次 KPI の FastAPI ルーター定義。

- GET /kpi/weekly
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from sparkleap.storage.repository import InMemoryRepository
from sparkleap.storage.state import get_repository

from .schemas import WeeklyExecutionSnapshot
from .service import KPIService

router = APIRouter(prefix="/kpi", tags=["kpi"])


def get_kpi_service(
    repository: InMemoryRepository = Depends(get_repository),
) -> KPIService:
    return KPIService(repository)


@router.get(
    "/weekly",
    response_model=WeeklyExecutionSnapshot,
    summary="週次実行 KPI の取得",
    description=(
        "week_reference を含む週（月曜 00:00 UTC 始まり）の KPI を計算し、"
        "スナップショットとして保存したうえで返す。"
    ),
)
def get_weekly_kpis(
    user_id: str = Query(..., description="ユーザー ID"),
    week_reference: Optional[datetime] = Query(
        None,
        description="対象週に含まれる任意の日時（ISO8601）。省略時は現在時刻。",
    ),
    scope_table_id: Optional[str] = Query(
        None,
        description="指定時はその Notion データベースのタスクだけで集計する。",
    ),
    service: KPIService = Depends(get_kpi_service),
) -> WeeklyExecutionSnapshot:
    try:
        return service.compute_weekly_kpis(user_id, week_reference, scope_table_id)
    except Exception as exc:  # noqa: BLE001
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute KPIs.",
        ) from exc
