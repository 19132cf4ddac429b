# backend/sparkleap/credentials/config.py

"""
認証情報の暗号化に必要な設定値をまとめるモジュール。
"""

from dataclasses import dataclass
from functools import lru_cache

from sparkleap.utils.config import get_env


@dataclass(frozen=True)
class CredentialSettings:
    """認証情報暗号化用の設定値コンテナ。"""

    encryption_key: str


@lru_cache()
def get_credential_settings() -> CredentialSettings:
    """
    環境変数から暗号化設定を読み込む。

    必須:
      - SPARKLEAP_ENCRYPTION_KEY
    """
    return CredentialSettings(encryption_key=get_env("SPARKLEAP_ENCRYPTION_KEY"))
