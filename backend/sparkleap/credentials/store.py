# backend/sparkleap/credentials/store.py

"""
CredentialRecord の CRUD を担当するストア。

- 保存時に暗号化し、平文は保持しない
- 復号は呼び出し側が必要になったタイミングでのみ行う
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from sparkleap.utils.timeutils import utcnow

from .crypto import CredentialCipher, CredentialDecryptError
from .schemas import CredentialRecord, SourceType

logger = logging.getLogger(__name__)


class CredentialStore:
    """
    インメモリの CredentialRecord ストア。

    永続化層（Supabase / ファイル等）は外部コラボレータ扱いなので、
    ここでは同じインターフェースを持つ最小実装のみを提供する。
    """

    def __init__(self, cipher: Optional[CredentialCipher] = None) -> None:
        self._cipher = cipher or CredentialCipher()
        self._records: Dict[str, CredentialRecord] = {}

    def create(
        self,
        user_id: str,
        source_type: SourceType,
        payload: Dict[str, Any],
    ) -> CredentialRecord:
        """
        認証情報を暗号化して保存し、CredentialRecord を返す。
        """
        encrypted, iv = self._cipher.encrypt(json.dumps(payload))
        record = CredentialRecord(
            source_id=str(uuid.uuid4()),
            user_id=user_id,
            source_type=source_type,
            encrypted_payload=encrypted,
            iv=iv,
        )
        self._records[record.source_id] = record
        logger.info(
            "Stored credential. source_id=%s user_id=%s type=%s",
            record.source_id,
            user_id,
            source_type.value,
        )
        return record

    def get(self, source_id: str) -> Optional[CredentialRecord]:
        return self._records.get(source_id)

    def list_by_user(self, user_id: str) -> List[CredentialRecord]:
        return [r for r in self._records.values() if r.user_id == user_id]

    def update(self, source_id: str, **patch: Any) -> Optional[CredentialRecord]:
        """
        指定フィールドだけを更新する。存在しない場合は None。
        """
        record = self._records.get(source_id)
        if record is None:
            return None

        updated = record.model_copy(update={**patch, "updated_at": utcnow()})
        self._records[source_id] = updated
        return updated

    def delete(self, source_id: str) -> bool:
        return self._records.pop(source_id, None) is not None

    def decrypt_payload(self, record: CredentialRecord) -> Dict[str, Any]:
        """
        CredentialRecord を復号して JSON オブジェクトとして返す。

        :raises CredentialDecryptError: 復号できない / JSON オブジェクトでない場合
        """
        plaintext = self._cipher.decrypt(record.encrypted_payload, record.iv)
        try:
            payload = json.loads(plaintext)
        except ValueError as exc:
            raise CredentialDecryptError("Decrypted credential is not valid JSON.") from exc

        if not isinstance(payload, dict):
            raise CredentialDecryptError("Decrypted credential must be a JSON object.")
        return payload

    def reset(self) -> None:
        """テスト用に全レコードを破棄する。"""
        self._records.clear()
