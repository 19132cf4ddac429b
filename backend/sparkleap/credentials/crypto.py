# backend/sparkleap/credentials/crypto.py

"""
認証情報の暗号化・復号を担当するモジュール。

- アルゴリズム: AES-256-GCM（cryptography）
- 鍵: SPARKLEAP_ENCRYPTION_KEY の SHA-256 ダイジェスト
- IV: 12 バイトのランダム値。暗号文とともに hex 文字列で保存する
"""

from __future__ import annotations

import hashlib
import os
from typing import Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .config import get_credential_settings

_IV_SIZE = 12


class CredentialDecryptError(RuntimeError):
    """暗号文が壊れている / 鍵が一致しない場合の例外。"""


def _derive_key(secret: str) -> bytes:
    return hashlib.sha256(secret.encode("utf-8")).digest()


class CredentialCipher:
    """
    認証情報 JSON 文字列を暗号化・復号する薄いラッパー。
    """

    def __init__(self, secret: Optional[str] = None) -> None:
        secret = secret or get_credential_settings().encryption_key
        self._aead = AESGCM(_derive_key(secret))

    def encrypt(self, plaintext: str) -> Tuple[str, str]:
        """
        平文を暗号化し、(encrypted_payload, iv) を hex 文字列で返す。
        """
        iv = os.urandom(_IV_SIZE)
        encrypted = self._aead.encrypt(iv, plaintext.encode("utf-8"), None)
        return encrypted.hex(), iv.hex()

    def decrypt(self, encrypted_payload: str, iv: str) -> str:
        """
        encrypt() の出力を平文に戻す。

        :raises CredentialDecryptError: hex 不正・改ざん・鍵不一致の場合
        """
        try:
            data = bytes.fromhex(encrypted_payload)
            nonce = bytes.fromhex(iv)
        except ValueError as exc:
            raise CredentialDecryptError("Encrypted credential is not valid hex.") from exc

        if len(nonce) != _IV_SIZE:
            raise CredentialDecryptError("Invalid IV length for encrypted credential.")

        try:
            plaintext = self._aead.decrypt(nonce, data, None)
        except InvalidTag as exc:
            raise CredentialDecryptError(
                "Failed to decrypt credential. Check SPARKLEAP_ENCRYPTION_KEY."
            ) from exc

        return plaintext.decode("utf-8")
