# backend/sparkleap/notion/client.py

"""
Notion API との通信を担当するクライアントモジュール。
"""

from typing import Any, Dict, Optional

import httpx

from .config import NotionConfig, get_notion_config


class NotionClientError(RuntimeError):
    """Notion クライアント全般の例外。"""


class NotionAuthError(NotionClientError):
    """認証・権限関連のエラー。"""


class NotionAPIError(NotionClientError):
    """その他 Notion API 呼び出し時のエラー。"""


class NotionClient:
    """
    Notion API の薄いラッパークライアント。

    - データベースの query（カーソルページング）
    - データベース検索（search API）
    - データベーススキーマの取得
    """

    def __init__(
        self,
        token: str,
        config: Optional[NotionConfig] = None,
    ) -> None:
        if not token:
            raise NotionAuthError("Notion access token is empty.")
        self._token = token
        self.config = config or get_notion_config()

    def _build_headers(self) -> Dict[str, str]:
        """
        Notion API 呼び出しに必要なヘッダーを構築。
        """
        return {
            "Authorization": f"Bearer {self._token}",
            "Notion-Version": self.config.api_version,
            "Content-Type": "application/json",
        }

    def _raise_for_status(self, response: httpx.Response) -> None:
        """
        HTTP レスポンスコードに応じて適切な例外を投げる。
        """
        if response.status_code == 401:
            raise NotionAuthError("Unauthorized. Check the Notion access token.")
        if response.status_code == 403:
            raise NotionAuthError("Forbidden. Check Notion integration permissions.")
        if response.status_code >= 400:
            raise NotionAPIError(
                f"Notion API error: {response.status_code} {response.text}"
            )

    def _parse_json(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise NotionAPIError("Notion API returned a non-JSON response.") from exc
        if not isinstance(data, dict):
            raise NotionAPIError("Unexpected Notion API response format: not an object.")
        return data

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.config.api_base_url}{path}"
        try:
            response = httpx.post(
                url,
                headers=self._build_headers(),
                json=payload,
                timeout=self.config.timeout_seconds,
            )
        except httpx.RequestError as exc:
            raise NotionClientError(f"Failed to call Notion API: {exc}") from exc

        self._raise_for_status(response)
        return self._parse_json(response)

    def _get(self, path: str) -> Dict[str, Any]:
        url = f"{self.config.api_base_url}{path}"
        try:
            response = httpx.get(
                url,
                headers=self._build_headers(),
                timeout=self.config.timeout_seconds,
            )
        except httpx.RequestError as exc:
            raise NotionClientError(f"Failed to call Notion API: {exc}") from exc

        self._raise_for_status(response)
        return self._parse_json(response)

    def query_database(
        self,
        database_id: str,
        *,
        filter_: Optional[Dict[str, Any]] = None,
        start_cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        データベースを 1 ページ分 query する。

        返り値は Notion API の生レスポンス（results / has_more / next_cursor）。
        ページングは呼び出し側（NotionDatabaseSource）で行う。
        """
        payload: Dict[str, Any] = {"page_size": page_size or self.config.page_size}
        if start_cursor:
            payload["start_cursor"] = start_cursor
        if filter_:
            payload["filter"] = filter_

        data = self._post(f"/databases/{database_id}/query", payload)

        if not isinstance(data.get("results", []), list):
            raise NotionAPIError("Unexpected Notion API response format: 'results' is not a list.")
        return data

    def search_databases(
        self,
        *,
        start_cursor: Optional[str] = None,
        page_size: int = 50,
    ) -> Dict[str, Any]:
        """
        インテグレーションから見えるデータベースを 1 ページ分検索する。
        """
        payload: Dict[str, Any] = {
            "query": "",
            "filter": {"value": "database", "property": "object"},
            "page_size": page_size,
        }
        if start_cursor:
            payload["start_cursor"] = start_cursor

        return self._post("/search", payload)

    def retrieve_database(self, database_id: str) -> Dict[str, Any]:
        """
        データベースのメタ情報（プロパティ定義を含む）を取得する。
        """
        return self._get(f"/databases/{database_id}")
