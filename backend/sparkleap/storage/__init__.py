# backend/sparkleap/storage/__init__.py

"""
永続化層。

- repository: DatabaseDescriptor / TaskRecord / DirectoryUser / スナップショットのストア
- state: アプリ全体で共有するストアインスタンスの管理
"""

from .repository import InMemoryRepository, TaskRepository  # noqa: F401
