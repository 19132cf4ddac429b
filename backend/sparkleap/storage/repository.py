# backend/sparkleap/storage/repository.py

"""
Sync Engine と KPI 集計が利用する永続化インターフェースと、そのインメモリ実装。

Supabase / ファイルなどの本番向け実装は外部コラボレータ扱い。
TaskRepository プロトコルを満たせば差し替え可能。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from sparkleap.kpi.schemas import WeeklyExecutionSnapshot
from sparkleap.notion.schemas import DatabaseDescriptor, DirectoryUser, TaskRecord
from sparkleap.utils.timeutils import ensure_utc, utcnow

SnapshotKey = Tuple[str, datetime, Optional[str]]


class TaskRepository(Protocol):
    """Sync Engine / KPI 集計から見た永続化層の契約。"""

    def get_descriptor(self, descriptor_id: str) -> Optional[DatabaseDescriptor]:
        ...

    def get_descriptors_by_user(self, user_id: str) -> List[DatabaseDescriptor]:
        ...

    def upsert_descriptor(self, descriptor: DatabaseDescriptor) -> DatabaseDescriptor:
        ...

    def update_descriptor(
        self, descriptor_id: str, patch: Dict[str, Any]
    ) -> Optional[DatabaseDescriptor]:
        ...

    def upsert_task_records(self, records: Iterable[TaskRecord]) -> int:
        ...

    def get_tasks_by_user(self, user_id: str) -> List[TaskRecord]:
        ...

    def get_tasks_by_table(self, table_id: str) -> List[TaskRecord]:
        ...

    def delete_tasks_by_table(self, table_id: str) -> int:
        ...

    def upsert_directory_user(self, user: DirectoryUser) -> DirectoryUser:
        ...

    def upsert_snapshot(self, snapshot: WeeklyExecutionSnapshot) -> WeeklyExecutionSnapshot:
        ...

    def get_snapshot(
        self,
        user_id: str,
        week_start: datetime,
        scope_table_id: Optional[str] = None,
    ) -> Optional[WeeklyExecutionSnapshot]:
        ...


class InMemoryRepository:
    """
    プロセス内 dict に保持する TaskRepository 実装。

    - TaskRecord は (table_id, record_id) で一意。upsert は全項目置き換え
    - スナップショットは (user_id, week_start, scope_table_id) で一意
    """

    def __init__(self) -> None:
        self._descriptors: Dict[str, DatabaseDescriptor] = {}
        self._tasks: Dict[Tuple[str, str], TaskRecord] = {}
        self._directory: Dict[Tuple[str, str], DirectoryUser] = {}
        self._snapshots: Dict[SnapshotKey, WeeklyExecutionSnapshot] = {}

    # ------------------------------------------------------------------
    # DatabaseDescriptor
    # ------------------------------------------------------------------
    def get_descriptor(self, descriptor_id: str) -> Optional[DatabaseDescriptor]:
        return self._descriptors.get(descriptor_id)

    def get_descriptors_by_user(self, user_id: str) -> List[DatabaseDescriptor]:
        return [d for d in self._descriptors.values() if d.user_id == user_id]

    def upsert_descriptor(self, descriptor: DatabaseDescriptor) -> DatabaseDescriptor:
        existing = self._descriptors.get(descriptor.id)
        if existing is not None:
            descriptor = descriptor.model_copy(
                update={"created_at": existing.created_at, "updated_at": utcnow()}
            )
        self._descriptors[descriptor.id] = descriptor
        return descriptor

    def update_descriptor(
        self, descriptor_id: str, patch: Dict[str, Any]
    ) -> Optional[DatabaseDescriptor]:
        """
        指定フィールドだけを更新する。存在しない場合は None。

        model_copy(update=...) はバリデーションを通らないので、
        再検証してから保存する。
        """
        existing = self._descriptors.get(descriptor_id)
        if existing is None:
            return None

        data = existing.model_dump()
        data.update(patch)
        data["updated_at"] = utcnow()
        updated = DatabaseDescriptor.model_validate(data)
        self._descriptors[descriptor_id] = updated
        return updated

    # ------------------------------------------------------------------
    # TaskRecord
    # ------------------------------------------------------------------
    def upsert_task_records(self, records: Iterable[TaskRecord]) -> int:
        count = 0
        for record in records:
            self._tasks[record.key] = record
            count += 1
        return count

    def get_tasks_by_user(self, user_id: str) -> List[TaskRecord]:
        return [t for t in self._tasks.values() if t.user_id == user_id]

    def get_tasks_by_table(self, table_id: str) -> List[TaskRecord]:
        return [t for t in self._tasks.values() if t.table_id == table_id]

    def delete_tasks_by_table(self, table_id: str) -> int:
        keys = [k for k in self._tasks if k[0] == table_id]
        for key in keys:
            del self._tasks[key]
        return len(keys)

    # ------------------------------------------------------------------
    # DirectoryUser
    # ------------------------------------------------------------------
    def upsert_directory_user(self, user: DirectoryUser) -> DirectoryUser:
        key = (user.user_id, user.external_user_id)
        existing = self._directory.get(key)
        if existing is not None:
            user = user.model_copy(
                update={"created_at": existing.created_at, "updated_at": utcnow()}
            )
        self._directory[key] = user
        return user

    def get_directory_users(self, user_id: str) -> List[DirectoryUser]:
        return [u for (owner, _), u in self._directory.items() if owner == user_id]

    # ------------------------------------------------------------------
    # WeeklyExecutionSnapshot
    # ------------------------------------------------------------------
    @staticmethod
    def _snapshot_key(
        user_id: str, week_start: datetime, scope_table_id: Optional[str]
    ) -> SnapshotKey:
        return (user_id, ensure_utc(week_start), scope_table_id)

    def upsert_snapshot(self, snapshot: WeeklyExecutionSnapshot) -> WeeklyExecutionSnapshot:
        key = self._snapshot_key(snapshot.user_id, snapshot.week_start, snapshot.scope_table_id)
        self._snapshots[key] = snapshot
        return snapshot

    def get_snapshot(
        self,
        user_id: str,
        week_start: datetime,
        scope_table_id: Optional[str] = None,
    ) -> Optional[WeeklyExecutionSnapshot]:
        return self._snapshots.get(self._snapshot_key(user_id, week_start, scope_table_id))

    def reset(self) -> None:
        """テスト用に全データを破棄する。"""
        self._descriptors.clear()
        self._tasks.clear()
        self._directory.clear()
        self._snapshots.clear()
