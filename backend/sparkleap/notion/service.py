# backend/sparkleap/notion/service.py

"""
Notion クライアント・永続化層・マッピングをつなぐサービス層。

- NotionSyncService: 選択済みデータベースをページングで取り込み、TaskRecord として upsert する
- NotionDatabaseService: データベース選択・プロパティマッピング・接続停止などの管理操作
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from sparkleap.credentials.crypto import CredentialDecryptError
from sparkleap.credentials.schemas import CredentialRecord, SourceType
from sparkleap.credentials.store import CredentialStore
from sparkleap.storage.repository import TaskRepository
from sparkleap.utils.timeutils import parse_iso_datetime, utcnow

from .client import NotionAPIError, NotionAuthError, NotionClient, NotionClientError
from .mapping import extract_assignees, map_page_to_task
from .schemas import (
    ControlAction,
    ControlRequest,
    DatabaseDescriptor,
    DatabaseProperty,
    DatabaseSelection,
    DirectoryUser,
    PropertyMapping,
    RemoteDatabase,
    SyncMode,
    SyncResult,
    TaskRecord,
)
from .source import SourceFactory, TaskPageSource, notion_source_factory

logger = logging.getLogger(__name__)


class SourceNotFoundError(LookupError):
    """指定された source_id のデータソースが存在しない。"""


class DatabaseNotFoundError(LookupError):
    """指定された Notion データベースが登録されていない。"""


class SyncConfigurationError(RuntimeError):
    """
    認証情報の欠落・復号失敗・マッピング未設定など、
    フェッチ前に検出できる設定不備。
    """


def resolve_access_token(
    store: CredentialStore,
    source_id: str,
) -> Tuple[CredentialRecord, str]:
    """
    source_id の CredentialRecord を復号し、アクセストークンを取り出す。

    :raises SourceNotFoundError: データソースが存在しない場合
    :raises SyncConfigurationError: 停止中・復号失敗・トークン欠落の場合
    """
    record = store.get(source_id)
    if record is None:
        raise SourceNotFoundError(f"Data source not found: {source_id}")
    if not record.is_active:
        raise SyncConfigurationError(f"Data source is not active: {source_id}")

    try:
        payload = store.decrypt_payload(record)
    except CredentialDecryptError as exc:
        raise SyncConfigurationError(f"Invalid credentials for data source: {source_id}") from exc

    token = payload.get("token") or payload.get("access_token")
    if not isinstance(token, str) or not token:
        raise SyncConfigurationError("Missing Notion token")
    return record, token


@dataclass
class _TableProgress:
    upserted: int = 0


class NotionSyncService:
    """
    Notion タスク同期エンジン。

    - backfill: チェックポイントを無視して全件取り込む
    - incremental: チェックポイントより後に更新されたレコードだけを取り込む

    テーブル単位のフェッチ失敗はログに残してスキップし、他のテーブルは継続する。
    認証エラーだけは同期全体を中断する。
    """

    def __init__(
        self,
        repository: TaskRepository,
        credential_store: CredentialStore,
        source_factory: Optional[SourceFactory] = None,
    ) -> None:
        self._repository = repository
        self._credentials = credential_store
        self._source_factory: SourceFactory = source_factory or notion_source_factory

    # ------------------------------------------------------------------
    # 公開 API
    # ------------------------------------------------------------------
    def trigger_sync(
        self,
        source_id: str,
        mode: SyncMode = SyncMode.INCREMENTAL,
    ) -> SyncResult:
        """
        データソースに紐づくユーザーの選択済みデータベースをすべて同期する。
        """
        record, token = resolve_access_token(self._credentials, source_id)
        return self.sync(record.user_id, token, mode)

    def sync(self, user_id: str, token: str, mode: SyncMode) -> SyncResult:
        """
        復号済みトークンを使って、ユーザーの選択済みデータベースを同期する。

        :raises SyncConfigurationError: マッピング未設定のデータベースがある場合（フェッチ前）
        :raises NotionAuthError: Notion 側で認証エラーになった場合
        """
        if not token:
            raise SyncConfigurationError("Missing Notion token")

        selected = [d for d in self._repository.get_descriptors_by_user(user_id) if d.selected]
        unmapped = [d.id for d in selected if d.property_mapping is None]
        if unmapped:
            raise SyncConfigurationError(
                "Property mapping is not configured for database(s): " + ", ".join(unmapped)
            )

        result = SyncResult()
        for descriptor in selected:
            progress = _TableProgress()
            try:
                source = self._source_factory(token, descriptor.id)
                self._sync_table(source, descriptor, user_id, mode, progress)
            except NotionAuthError:
                logger.error(
                    "Notion authentication failed; aborting sync. user_id=%s database_id=%s",
                    user_id,
                    descriptor.id,
                )
                raise
            except NotionClientError as exc:
                logger.warning(
                    "Failed to sync Notion database; skipping. database_id=%s error=%s",
                    descriptor.id,
                    exc,
                )
                result.skipped_tables.append(descriptor.id)
            finally:
                result.upserted_count += progress.upserted

        logger.info(
            "Notion sync finished. user_id=%s mode=%s tables=%d upserted=%d skipped=%d",
            user_id,
            mode.value,
            len(selected),
            result.upserted_count,
            len(result.skipped_tables),
        )
        return result

    # ------------------------------------------------------------------
    # 内部処理
    # ------------------------------------------------------------------
    def _sync_table(
        self,
        source: TaskPageSource,
        descriptor: DatabaseDescriptor,
        user_id: str,
        mode: SyncMode,
        progress: _TableProgress,
    ) -> None:
        """
        1 テーブル分のページングループ。

        ページごとに upsert し、その都度チェックポイントを
        max(既存, ページ内の最大 last_modified_at) に進める。
        """
        checkpoint = descriptor.last_modified_checkpoint
        modified_after = checkpoint if mode == SyncMode.INCREMENTAL else None
        mapping = descriptor.property_mapping

        cursor: Optional[str] = None
        while True:
            page = source.list_page(modified_after, cursor)

            tasks = self._map_records(page.records, mapping, descriptor.id, user_id)
            self._upsert_assignees(page.records, mapping, user_id)
            progress.upserted += self._repository.upsert_task_records(tasks)

            latest = max(
                (t.last_modified_at for t in tasks if t.last_modified_at is not None),
                default=None,
            )
            if latest is not None and (checkpoint is None or latest > checkpoint):
                checkpoint = latest
                self._repository.update_descriptor(
                    descriptor.id, {"last_modified_checkpoint": checkpoint}
                )

            if not page.has_more or not page.next_cursor:
                break
            if page.next_cursor == cursor:
                raise NotionAPIError(
                    f"Pagination cursor did not advance for database {descriptor.id}."
                )
            cursor = page.next_cursor

    @staticmethod
    def _map_records(
        records: Iterable[Dict[str, Any]],
        mapping: Optional[PropertyMapping],
        table_id: str,
        user_id: str,
    ) -> List[TaskRecord]:
        tasks: List[TaskRecord] = []
        for raw in records:
            if not isinstance(raw, dict) or not raw.get("id"):
                # ID はレコードのキーなので、空の場合はスキップする
                logger.warning("Skipping Notion page without id. database_id=%s", table_id)
                continue
            tasks.append(map_page_to_task(raw, mapping, table_id=table_id, user_id=user_id))
        return tasks

    def _upsert_assignees(
        self,
        records: Iterable[Dict[str, Any]],
        mapping: Optional[PropertyMapping],
        user_id: str,
    ) -> None:
        """
        担当者をユーザーディレクトリに登録する。失敗しても同期は止めない。
        """
        for raw in records:
            if not isinstance(raw, dict):
                continue
            for person in extract_assignees(raw, mapping):
                try:
                    person_info = person.get("person") or {}
                    self._repository.upsert_directory_user(
                        DirectoryUser(
                            external_user_id=person["id"],
                            user_id=user_id,
                            name=person.get("name"),
                            email=person_info.get("email") if isinstance(person_info, dict) else None,
                        )
                    )
                except Exception as exc:  # noqa: BLE001 - ディレクトリ登録は本処理を止めない
                    logger.warning(
                        "Failed to upsert directory user. notion_user_id=%s error=%s",
                        person.get("id"),
                        exc,
                    )


ClientFactory = Callable[[str], NotionClient]


class NotionDatabaseService:
    """
    同期対象データベースの管理操作をまとめるサービス。

    - リモートのデータベース一覧・スキーマ取得
    - 同期対象の選択 / プロパティマッピングの保存
    - 接続停止・データ削除
    - デモ用モックデータの投入
    """

    def __init__(
        self,
        repository: TaskRepository,
        credential_store: CredentialStore,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self._repository = repository
        self._credentials = credential_store
        self._client_factory: ClientFactory = client_factory or NotionClient

    def _client_for_source(self, source_id: str) -> NotionClient:
        _, token = resolve_access_token(self._credentials, source_id)
        return self._client_factory(token)

    def list_remote_databases(self, source_id: str) -> List[RemoteDatabase]:
        """
        インテグレーションから見える Notion データベースを全ページ分取得する。
        ページの中身まではクロールしない。
        """
        client = self._client_for_source(source_id)

        databases: List[RemoteDatabase] = []
        cursor: Optional[str] = None
        while True:
            data = client.search_databases(start_cursor=cursor)
            for raw in data.get("results") or []:
                if not isinstance(raw, dict) or not raw.get("id"):
                    continue
                databases.append(
                    RemoteDatabase(
                        id=raw["id"],
                        title=_database_title(raw),
                        last_edited_time=parse_iso_datetime(raw.get("last_edited_time")),
                    )
                )

            next_cursor = data.get("next_cursor")
            if not data.get("has_more") or not next_cursor or next_cursor == cursor:
                break
            cursor = next_cursor

        return databases

    def get_remote_schema(self, source_id: str, database_id: str) -> List[DatabaseProperty]:
        """
        データベースのプロパティ定義を取得する。
        登録済みのデータベースであれば、その properties も更新する。
        """
        client = self._client_for_source(source_id)
        meta = client.retrieve_database(database_id)

        raw_props = meta.get("properties") or {}
        properties = [
            DatabaseProperty(
                name=name,
                type=(definition or {}).get("type") or "unknown",
                id=(definition or {}).get("id"),
            )
            for name, definition in raw_props.items()
        ]

        if self._repository.get_descriptor(database_id) is not None:
            self._repository.update_descriptor(database_id, {"properties": properties})
        return properties

    def select_databases(
        self,
        source_id: str,
        user_id: str,
        selections: Iterable[DatabaseSelection],
    ) -> int:
        """
        同期対象のデータベースを登録する。

        既に登録済みのものは selected を戻すだけで、マッピングとチェックポイントは保持する。
        """
        if self._credentials.get(source_id) is None:
            raise SourceNotFoundError(f"Data source not found: {source_id}")

        count = 0
        for selection in selections:
            name = selection.name or "Untitled"
            if self._repository.get_descriptor(selection.id) is not None:
                self._repository.update_descriptor(
                    selection.id,
                    {"selected": True, "display_name": name, "user_id": user_id},
                )
            else:
                self._repository.upsert_descriptor(
                    DatabaseDescriptor(id=selection.id, user_id=user_id, display_name=name)
                )
            count += 1

        logger.info("Selected Notion databases. user_id=%s count=%d", user_id, count)
        return count

    def save_mapping(self, database_id: str, mapping: PropertyMapping) -> DatabaseDescriptor:
        updated = self._repository.update_descriptor(database_id, {"property_mapping": mapping})
        if updated is None:
            raise DatabaseNotFoundError(f"Database not found: {database_id}")
        return updated

    def control(self, request: ControlRequest) -> bool:
        """
        接続の停止 / 取り込み済みデータの削除。

        - stop: 指定データソースを非アクティブにする
        - delete-data + database_id: そのデータベースのタスクを削除し、選択を外す
        - delete-data のみ: ユーザーの Notion データソースをすべて非アクティブにする
        """
        if request.action == ControlAction.STOP:
            if not request.source_id:
                raise ValueError("source_id is required for action 'stop'")
            return self._credentials.update(request.source_id, is_active=False) is not None

        if request.database_id:
            deleted = self._repository.delete_tasks_by_table(request.database_id)
            self._repository.update_descriptor(request.database_id, {"selected": False})
            logger.info(
                "Deleted synced tasks. database_id=%s deleted=%d",
                request.database_id,
                deleted,
            )
            return True

        for record in self._credentials.list_by_user(request.user_id):
            if record.source_type == SourceType.NOTION:
                self._credentials.update(record.source_id, is_active=False)
        return True

    def seed_mock_tasks(
        self,
        user_id: str,
        database_id: str,
        tasks_count: int = 12,
        *,
        now: Optional[datetime] = None,
    ) -> int:
        """
        デモ用に、マッピング済みのモックデータベースとタスクを投入する。
        """
        base = now or utcnow()

        self._repository.upsert_descriptor(
            DatabaseDescriptor(
                id=database_id,
                user_id=user_id,
                display_name="Mock Tasks",
                property_mapping=DEFAULT_MOCK_MAPPING,
            )
        )

        statuses = ["Todo", "In Progress", "Blocked", "Done"]
        tags = ["Product", "Growth", "Infra"]
        priorities = ["Low", "Medium", "High"]

        tasks: List[TaskRecord] = []
        for i in range(tasks_count):
            created = base - timedelta(days=i + 10)
            due = created + timedelta(days=2 + (i % 5))
            is_done = i % 3 == 0
            completed = created + timedelta(days=1 + (i % 4)) if is_done else None
            tasks.append(
                TaskRecord(
                    record_id=f"mock-page-{i + 1}",
                    table_id=database_id,
                    user_id=user_id,
                    title=f"Mock Task #{i + 1}",
                    status="Done" if is_done else statuses[i % len(statuses)],
                    assignee_ids=[],
                    created_at=created,
                    due_at=due,
                    completed_at=completed,
                    priority=priorities[i % len(priorities)],
                    estimate=float((i % 5) + 1),
                    tags=[tags[i % len(tags)]],
                    last_modified_at=created + timedelta(hours=1),
                    archived=False,
                )
            )

        return self._repository.upsert_task_records(tasks)


DEFAULT_MOCK_MAPPING = PropertyMapping(
    title="Name",
    status="Status",
    assignee="Assignee",
    due_date="Due",
    completed_at="Completed",
    priority="Priority",
    estimate="Estimate",
    tags="Tags",
    active_status_values=["In Progress", "Blocked"],
    completed_status_values=["Done"],
    backlog_status_values=["Todo"],
)


def _database_title(raw: Dict[str, Any]) -> str:
    title = raw.get("title")
    if isinstance(title, list) and title:
        first = title[0]
        if isinstance(first, dict) and isinstance(first.get("plain_text"), str):
            return first["plain_text"] or "Untitled"
    if isinstance(title, str) and title:
        return title
    return "Untitled"
