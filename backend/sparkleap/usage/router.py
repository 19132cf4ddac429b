# backend/sparkleap/usage/router.py

"""
利用状況の FastAPI ルーター定義。

- GET /usage-stats（x-admin-key ヘッダ必須）
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from .config import get_usage_settings
from .limiter import UsageLimiter, UsageStats

router = APIRouter(tags=["usage"])


def get_usage_limiter(request: Request) -> UsageLimiter:
    """
    create_app() で app.state に登録した UsageLimiter を返す。
    """
    return request.app.state.usage_limiter


@router.get(
    "/usage-stats",
    response_model=UsageStats,
    summary="API 利用状況の集計",
)
def get_usage_stats(
    x_admin_key: Optional[str] = Header(None),
    limiter: UsageLimiter = Depends(get_usage_limiter),
) -> UsageStats:
    if x_admin_key != get_usage_settings().admin_api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return limiter.get_stats()
