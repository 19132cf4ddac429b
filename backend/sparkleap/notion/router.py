# backend/sparkleap/notion/router.py

"""
Notion 連携用の FastAPI ルーター定義。

- POST /notion/sync
- GET  /notion/databases
- POST /notion/databases/select
- GET  /notion/schemas
- PUT  /notion/mapping
- POST /notion/control
- POST /notion/mock/seed
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from sparkleap.credentials.store import CredentialStore
from sparkleap.storage.repository import InMemoryRepository
from sparkleap.storage.state import get_credential_store, get_repository
from sparkleap.usage.limiter import UsageLimiter
from sparkleap.usage.router import get_usage_limiter

from .client import NotionAuthError, NotionClientError
from .schemas import (
    ControlRequest,
    RemoteDatabaseListResponse,
    SaveMappingRequest,
    SchemaResponse,
    SeedRequest,
    SeedResponse,
    SelectDatabasesRequest,
    SelectDatabasesResponse,
    SimpleSuccess,
    SyncRequest,
    SyncResponse,
)
from .service import (
    DatabaseNotFoundError,
    NotionDatabaseService,
    NotionSyncService,
    SourceNotFoundError,
    SyncConfigurationError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notion", tags=["notion"])


# Dependency providers
# - テスト時に FastAPI dependency_overrides で差し替え可能にする
def get_sync_service(
    repository: InMemoryRepository = Depends(get_repository),
    credential_store: CredentialStore = Depends(get_credential_store),
) -> NotionSyncService:
    return NotionSyncService(repository, credential_store)


def get_database_service(
    repository: InMemoryRepository = Depends(get_repository),
    credential_store: CredentialStore = Depends(get_credential_store),
) -> NotionDatabaseService:
    return NotionDatabaseService(repository, credential_store)


def _to_http_error(exc: Exception, fallback_detail: str) -> HTTPException:
    """
    サービス層の例外を HTTP エラーに変換する。
    """
    if isinstance(exc, (SourceNotFoundError, DatabaseNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, (SyncConfigurationError, ValueError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, NotionAuthError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    if isinstance(exc, NotionClientError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))

    logger.exception("%s", fallback_detail)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=fallback_detail,
    )


@router.post(
    "/sync",
    response_model=SyncResponse,
    summary="選択済み Notion データベースのタスクを同期",
    description="mode=backfill は全件、mode=incremental は前回チェックポイント以降の更新分のみを取り込む。",
)
def sync_notion_tasks(
    body: SyncRequest,
    service: NotionSyncService = Depends(get_sync_service),
    credential_store: CredentialStore = Depends(get_credential_store),
    limiter: UsageLimiter = Depends(get_usage_limiter),
) -> SyncResponse:
    """
    - 利用上限はデータソースの所有ユーザー単位。存在しない source_id はカウントしない
    - 利用上限超過 → 429
    - データソースなし → 404 / 認証情報・マッピング不備 → 400 / Notion 認証エラー → 401
    - 想定外の例外 → 500
    """
    record = credential_store.get(body.source_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Data source not found: {body.source_id}",
        )

    decision = limiter.check_limit(f"sync:{record.user_id}")
    if not decision.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Sync limit reached. Try again after {decision.reset_time.isoformat()}.",
        )

    try:
        result = service.trigger_sync(body.source_id, body.mode)
    except Exception as exc:  # noqa: BLE001
        raise _to_http_error(exc, "Failed to sync Notion tasks.") from exc

    return SyncResponse(
        success=True,
        upserted_count=result.upserted_count,
        skipped_tables=result.skipped_tables,
    )


@router.get(
    "/databases",
    response_model=RemoteDatabaseListResponse,
    summary="接続中ワークスペースの Notion データベース一覧",
)
def list_notion_databases(
    source_id: str = Query(..., description="データソース ID"),
    service: NotionDatabaseService = Depends(get_database_service),
) -> RemoteDatabaseListResponse:
    try:
        databases = service.list_remote_databases(source_id)
    except Exception as exc:  # noqa: BLE001
        raise _to_http_error(exc, "Failed to list Notion databases.") from exc

    return RemoteDatabaseListResponse(databases=databases)


@router.post(
    "/databases/select",
    response_model=SelectDatabasesResponse,
    summary="同期対象の Notion データベースを選択",
)
def select_notion_databases(
    body: SelectDatabasesRequest,
    service: NotionDatabaseService = Depends(get_database_service),
) -> SelectDatabasesResponse:
    try:
        count = service.select_databases(body.source_id, body.user_id, body.selections)
    except Exception as exc:  # noqa: BLE001
        raise _to_http_error(exc, "Failed to save selections.") from exc

    return SelectDatabasesResponse(count=count)


@router.get(
    "/schemas",
    response_model=SchemaResponse,
    summary="Notion データベースのプロパティ定義を取得",
)
def get_notion_schema(
    source_id: str = Query(...),
    database_id: str = Query(...),
    service: NotionDatabaseService = Depends(get_database_service),
) -> SchemaResponse:
    try:
        properties = service.get_remote_schema(source_id, database_id)
    except Exception as exc:  # noqa: BLE001
        raise _to_http_error(exc, "Failed to fetch schema.") from exc

    return SchemaResponse(properties=properties)


@router.put(
    "/mapping",
    response_model=SimpleSuccess,
    summary="プロパティマッピングを保存",
)
def save_property_mapping(
    body: SaveMappingRequest,
    service: NotionDatabaseService = Depends(get_database_service),
) -> SimpleSuccess:
    try:
        service.save_mapping(body.database_id, body.mapping)
    except Exception as exc:  # noqa: BLE001
        raise _to_http_error(exc, "Failed to save mapping.") from exc

    return SimpleSuccess(success=True)


@router.post(
    "/control",
    response_model=SimpleSuccess,
    summary="同期の停止 / 取り込み済みデータの削除",
)
def control_notion_sync(
    body: ControlRequest,
    service: NotionDatabaseService = Depends(get_database_service),
) -> SimpleSuccess:
    try:
        ok = service.control(body)
    except Exception as exc:  # noqa: BLE001
        raise _to_http_error(exc, "Failed to process control request.") from exc

    return SimpleSuccess(success=ok)


@router.post(
    "/mock/seed",
    response_model=SeedResponse,
    summary="デモ用のモックタスクを投入",
)
def seed_mock_tasks(
    body: SeedRequest,
    service: NotionDatabaseService = Depends(get_database_service),
) -> SeedResponse:
    try:
        seeded = service.seed_mock_tasks(body.user_id, body.database_id, body.tasks_count)
    except Exception as exc:  # noqa: BLE001
        raise _to_http_error(exc, "Failed to seed mock data.") from exc

    return SeedResponse(seeded=seeded, database_id=body.database_id)
