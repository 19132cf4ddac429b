# backend/sparkleap/credentials/router.py

"""
データソース（認証情報）管理の FastAPI ルーター定義。

- POST   /datasources
- GET    /datasources
- DELETE /datasources/{source_id}

OAuth のリダイレクト / コールバック処理はこのルーターの対象外。
API キーの手入力や、コールバック完了後の保存に使う。
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from sparkleap.storage.state import get_credential_store

from .schemas import CredentialCreateRequest, DataSourceListResponse, DataSourceSummary
from .store import CredentialStore

router = APIRouter(prefix="/datasources", tags=["datasources"])


@router.post(
    "",
    response_model=DataSourceSummary,
    status_code=status.HTTP_201_CREATED,
    summary="データソースの認証情報を暗号化して保存",
)
def create_data_source(
    body: CredentialCreateRequest,
    store: CredentialStore = Depends(get_credential_store),
) -> DataSourceSummary:
    if not body.credentials:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="credentials must not be empty.",
        )

    record = store.create(body.user_id, body.source_type, body.credentials)
    return DataSourceSummary.from_record(record)


@router.get(
    "",
    response_model=DataSourceListResponse,
    summary="ユーザーのデータソース一覧（秘密情報は含まない）",
)
def list_data_sources(
    user_id: str = Query(...),
    store: CredentialStore = Depends(get_credential_store),
) -> DataSourceListResponse:
    items = [DataSourceSummary.from_record(r) for r in store.list_by_user(user_id)]
    return DataSourceListResponse(items=items, count=len(items))


@router.delete(
    "/{source_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="データソースを削除",
)
def delete_data_source(
    source_id: str,
    store: CredentialStore = Depends(get_credential_store),
) -> None:
    if not store.delete(source_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Data source not found: {source_id}",
        )
