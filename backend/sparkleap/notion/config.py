# backend/sparkleap/notion/config.py

"""
Notion 連携に必要な設定値をまとめるモジュール。

アクセストークンはユーザーごとに CredentialStore から復号して渡すため、
ここでは API エンドポイントなどの共通設定だけを扱う。
"""

from dataclasses import dataclass
from functools import lru_cache

from sparkleap.utils.config import get_env, get_env_float, get_env_int


@dataclass(frozen=True)
class NotionConfig:
    """Notion API 用の設定値コンテナ。"""

    api_base_url: str
    api_version: str
    page_size: int
    timeout_seconds: float


@lru_cache()
def get_notion_config() -> NotionConfig:
    """
    環境変数から Notion 設定を読み込む。

    任意:
      - NOTION_API_BASE_URL    (デフォルト: https://api.notion.com/v1)
      - NOTION_API_VERSION     (デフォルト: 2022-06-28)
      - NOTION_PAGE_SIZE       (デフォルト: 100, Notion の上限も 100)
      - NOTION_TIMEOUT_SECONDS (デフォルト: 10)
    """
    api_base_url = get_env(
        "NOTION_API_BASE_URL",
        default="https://api.notion.com/v1",
        required=False,
    )
    api_version = get_env(
        "NOTION_API_VERSION",
        default="2022-06-28",
        required=False,
    )
    page_size = min(max(get_env_int("NOTION_PAGE_SIZE", 100), 1), 100)

    return NotionConfig(
        api_base_url=api_base_url.rstrip("/"),
        api_version=api_version,
        page_size=page_size,
        timeout_seconds=get_env_float("NOTION_TIMEOUT_SECONDS", 10.0),
    )
