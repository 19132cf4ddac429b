# backend/sparkleap/notion/schemas.py

"""
Notion から取得したタスクデータを内部で扱うためのスキーマ定義。

- PropertyMapping: Notion のプロパティ名 → 正規タスク項目の対応表
- DatabaseDescriptor: 同期対象として選択された Notion データベース
- TaskRecord: マッピング非依存の正規タスクレコード
- /notion/* エンドポイントのリクエスト・レスポンス
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from sparkleap.utils.timeutils import ensure_utc, utcnow


class SyncMode(str, Enum):
    """同期モード。"""

    BACKFILL = "backfill"
    INCREMENTAL = "incremental"


class PropertyMapping(BaseModel):
    """
    Notion データベースのプロパティ名を正規タスク項目に対応づける辞書。

    すべて任意項目。未設定の項目や、レコード側に存在しないプロパティは
    エラーにせず None として扱う。
    """

    title: Optional[str] = None
    status: Optional[str] = None
    assignee: Optional[str] = None
    due_date: Optional[str] = None
    completed_at: Optional[str] = None
    priority: Optional[str] = None
    estimate: Optional[str] = None
    tags: Optional[str] = None
    parent_task: Optional[str] = Field(
        None,
        description="親タスクを指す relation プロパティ名",
    )
    active_status_values: List[str] = Field(default_factory=list)
    completed_status_values: List[str] = Field(default_factory=list)
    backlog_status_values: List[str] = Field(default_factory=list)


class DatabaseProperty(BaseModel):
    """Notion データベースのプロパティ定義（スキーマ表示用）。"""

    name: str
    type: str
    id: Optional[str] = None


class DatabaseDescriptor(BaseModel):
    """
    同期対象として選択された Notion データベース。

    last_modified_checkpoint は増分同期の下限で、単調増加のみ許される。
    """

    id: str = Field(..., description="Notion データベース ID")
    user_id: str
    display_name: str = "Untitled"
    selected: bool = True
    properties: List[DatabaseProperty] = Field(default_factory=list)
    property_mapping: Optional[PropertyMapping] = None
    last_modified_checkpoint: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("last_modified_checkpoint")
    @classmethod
    def _checkpoint_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)


class TaskRecord(BaseModel):
    """
    正規タスクレコード。

    識別子は (table_id, record_id)。再同期時は全項目が置き換えられる。
    Sync Engine からのみ作成・更新され、KPI 集計と UI からは読み取り専用。
    """

    record_id: str = Field(..., description="Notion ページ ID")
    table_id: str = Field(..., description="Notion データベース ID")
    user_id: str
    title: Optional[str] = None
    status: Optional[str] = None
    assignee_ids: Optional[List[str]] = None
    created_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    priority: Optional[str] = None
    estimate: Optional[float] = None
    tags: Optional[List[str]] = None
    last_modified_at: Optional[datetime] = None
    archived: bool = False
    parent_task_id: Optional[str] = None

    @field_validator("created_at", "due_at", "completed_at", "last_modified_at")
    @classmethod
    def _timestamps_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @property
    def key(self) -> tuple:
        return (self.table_id, self.record_id)


class DirectoryUser(BaseModel):
    """担当者として観測された Notion ユーザーの簡易ディレクトリ。"""

    external_user_id: str
    user_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# ----------------------------------------------------------------------
# /notion/* のリクエスト・レスポンス
# ----------------------------------------------------------------------
class SyncRequest(BaseModel):
    source_id: str
    mode: SyncMode = SyncMode.INCREMENTAL


class SyncResult(BaseModel):
    """
    同期処理の結果。

    部分失敗の詳細は持たず、upsert 件数とスキップしたテーブルのみ返す。
    """

    upserted_count: int = 0
    skipped_tables: List[str] = Field(default_factory=list)


class SyncResponse(SyncResult):
    success: bool = True


class DatabaseSelection(BaseModel):
    id: str
    name: Optional[str] = None


class SelectDatabasesRequest(BaseModel):
    source_id: str
    user_id: str
    selections: List[DatabaseSelection]


class SelectDatabasesResponse(BaseModel):
    success: bool = True
    count: int


class SaveMappingRequest(BaseModel):
    database_id: str
    mapping: PropertyMapping


class RemoteDatabase(BaseModel):
    """Notion 検索 API で見つかったデータベースの軽量情報。"""

    id: str
    title: str
    last_edited_time: Optional[datetime] = None


class RemoteDatabaseListResponse(BaseModel):
    databases: List[RemoteDatabase]


class SchemaResponse(BaseModel):
    properties: List[DatabaseProperty]


class ControlAction(str, Enum):
    STOP = "stop"
    DELETE_DATA = "delete-data"


class ControlRequest(BaseModel):
    action: ControlAction
    user_id: str
    source_id: Optional[str] = None
    database_id: Optional[str] = None


class SeedRequest(BaseModel):
    user_id: str = "demo-user"
    database_id: str = "mock-db-1"
    tasks_count: int = Field(12, ge=1, le=500)


class SeedResponse(BaseModel):
    success: bool = True
    seeded: int
    database_id: str


class SimpleSuccess(BaseModel):
    success: bool


