# backend/sparkleap/credentials/schemas.py

"""
データソース認証情報のスキーマ定義。
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from sparkleap.utils.timeutils import utcnow


class SourceType(str, Enum):
    """接続可能なデータソースの種別。"""

    NOTION = "notion"
    GOOGLE = "google"
    GOOGLE_SHEETS = "google_sheets"
    GOOGLE_CALENDAR = "google_calendar"
    STRIPE = "stripe"


class CredentialRecord(BaseModel):
    """
    ユーザー・データソースごとの暗号化済み認証情報。

    平文（アクセストークン等）は一切保持しない。
    同期のたびに CredentialStore.decrypt_payload() で復号して使う。
    """

    source_id: str = Field(..., description="データソース ID")
    user_id: str = Field(..., description="所有ユーザー ID")
    source_type: SourceType
    encrypted_payload: str = Field(..., description="暗号化済み JSON（hex）")
    iv: str = Field(..., description="AES-GCM の IV（hex）")
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CredentialCreateRequest(BaseModel):
    """
    POST /datasources のリクエストボディ。

    credentials には {"token": "..."} のような JSON を渡す。
    """

    user_id: str
    source_type: SourceType
    credentials: Dict[str, Any] = Field(
        ...,
        description="平文の認証情報。保存前に暗号化される。",
    )


class DataSourceSummary(BaseModel):
    """クライアントに返す、秘密情報を含まないデータソース情報。"""

    source_id: str
    user_id: str
    source_type: SourceType
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: CredentialRecord) -> "DataSourceSummary":
        return cls(
            source_id=record.source_id,
            user_id=record.user_id,
            source_type=record.source_type,
            is_active=record.is_active,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class DataSourceListResponse(BaseModel):
    items: List[DataSourceSummary]
    count: int
