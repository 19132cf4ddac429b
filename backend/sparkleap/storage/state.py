# backend/sparkleap/storage/state.py

"""
ストアのシンプルな状態管理モジュール。

- アプリ全体で共有する InMemoryRepository / CredentialStore を提供
- テスト時にリセットできるようにする

FastAPI の DI（Depends）から利用し、テストでは dependency_overrides で差し替える。
"""

from __future__ import annotations

from typing import Optional

from sparkleap.credentials.store import CredentialStore

from .repository import InMemoryRepository

_repository: Optional[InMemoryRepository] = None
_credential_store: Optional[CredentialStore] = None


def get_repository() -> InMemoryRepository:
    """
    共有の InMemoryRepository インスタンスを返す。

    初回呼び出し時にのみ生成し、それ以降は同じインスタンスを返す。
    """
    global _repository
    if _repository is None:
        _repository = InMemoryRepository()
    return _repository


def get_credential_store() -> CredentialStore:
    """
    共有の CredentialStore インスタンスを返す。
    """
    global _credential_store
    if _credential_store is None:
        _credential_store = CredentialStore()
    return _credential_store


def reset_state() -> None:
    """
    テスト用にストアのシングルトン状態をリセットする。
    """
    global _repository, _credential_store
    _repository = None
    _credential_store = None
