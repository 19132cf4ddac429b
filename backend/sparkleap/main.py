# backend/sparkleap/main.py

"""
バックエンドアプリケーションのエントリーポイント。

主な責務:
- /notion/* : Notion タスク同期・マッピング管理
- /kpi/weekly : 週次実行 KPI
- /datasources : データソース認証情報の管理
- /usage-stats : API 利用状況
"""

import logging
from typing import Optional

from fastapi import FastAPI

from sparkleap.credentials.router import router as datasources_router
from sparkleap.kpi.router import router as kpi_router
from sparkleap.notion.router import router as notion_router
from sparkleap.usage.limiter import UsageLimiter
from sparkleap.usage.router import router as usage_router
from sparkleap.utils.config import get_env

logging.basicConfig(
    level=get_env("LOG_LEVEL", default="INFO", required=False).upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def create_app(usage_limiter: Optional[UsageLimiter] = None) -> FastAPI:
    """
    FastAPI アプリケーションファクトリ。

    - UsageLimiter はアプリごとに 1 インスタンス（app.state.usage_limiter）
    - ヘルスチェックエンドポイント (/health)
    """
    app = FastAPI(title="Sparkleap KPI Backend")
    app.state.usage_limiter = usage_limiter or UsageLimiter.from_settings()

    # ルーター登録
    app.include_router(datasources_router)
    app.include_router(notion_router)
    app.include_router(kpi_router)
    app.include_router(usage_router)

    @app.get("/health", tags=["health"])
    def health_check() -> dict:
        """
        簡易ヘルスチェックエンドポイント。
        """
        return {"status": "ok"}

    return app


# uvicorn 実行時のエントリーポイント
app = create_app()
