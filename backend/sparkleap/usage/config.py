# backend/sparkleap/usage/config.py

"""
利用制限まわりの設定値。
"""

from dataclasses import dataclass

from sparkleap.utils.config import get_env, get_env_int


@dataclass(frozen=True)
class UsageSettings:
    daily_limit: int
    hourly_limit: int
    admin_api_key: str


def get_usage_settings() -> UsageSettings:
    """
    環境変数から利用制限の設定を読み込む。

    任意:
      - RATE_LIMIT_DAILY  (デフォルト: 50)
      - RATE_LIMIT_HOURLY (デフォルト: 10)
      - ADMIN_API_KEY     (デフォルト: dev-admin-key)
    """
    return UsageSettings(
        daily_limit=get_env_int("RATE_LIMIT_DAILY", 50),
        hourly_limit=get_env_int("RATE_LIMIT_HOURLY", 10),
        admin_api_key=get_env("ADMIN_API_KEY", default="dev-admin-key", required=False),
    )
