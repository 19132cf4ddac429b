# backend/sparkleap/credentials/__init__.py

"""
データソース認証情報（OAuth トークン / API キー）の管理モジュール群。

- config: 暗号鍵の設定値
- crypto: AES-GCM による暗号化・復号
- schemas: CredentialRecord などの Pydantic モデル
- store: CredentialRecord の CRUD（平文は保存しない）
- router: /datasources エンドポイント
"""

from .crypto import CredentialCipher, CredentialDecryptError  # noqa: F401
from .schemas import CredentialRecord, SourceType  # noqa: F401
from .store import CredentialStore  # noqa: F401
