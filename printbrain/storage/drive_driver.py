"""Google Drive v3 driver (read-only listing and change feed)."""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import httpx
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from printbrain.storage.base import (
    BaseFileTreeDriver,
    FileInfo,
    StorageConnectionError,
    StorageError,
    StoragePermissionError,
    StorageRateLimitError,
)

logger = logging.getLogger(__name__)

DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]
RETRYABLE_STATUS = {429, 500, 503}


class GoogleDriveDriver(BaseFileTreeDriver):
    """Google Drive driver authenticated with a service account.

    Configuration:
        service_account_key_path: Path to the service account JSON key
        service_account_info: Key contents as JSON string (takes precedence)
        timeout: Per-request timeout in seconds (default: 60)

    Example:
        >>> driver = GoogleDriveDriver({"service_account_key_path": "key.json"})
        >>> page = await driver.list_files("'root' in parents", "files(id, name)")
    """

    def __init__(self, config: Dict[str, Any], client: Optional[httpx.AsyncClient] = None):
        super().__init__(config)
        self._credentials = None
        self._client = client or httpx.AsyncClient(
            base_url=DRIVE_API_URL,
            timeout=config.get("timeout", 60.0),
        )

    def _load_credentials(self):
        info = self.config.get("service_account_info")
        if info:
            return service_account.Credentials.from_service_account_info(
                json.loads(info), scopes=DRIVE_SCOPES
            )
        key_path = self.config.get("service_account_key_path")
        if not key_path:
            raise StoragePermissionError("Google service account key not configured")
        try:
            return service_account.Credentials.from_service_account_file(
                key_path, scopes=DRIVE_SCOPES
            )
        except FileNotFoundError:
            raise StoragePermissionError(
                f"Google service account key not found at: {key_path}. "
                "Share the Drive folder with the service account email."
            )

    async def _access_token(self) -> str:
        """Get a valid OAuth access token, refreshing it when expired."""
        if self._credentials is None:
            self._credentials = self._load_credentials()
        if not self._credentials.valid:
            # google-auth refresh is blocking
            await asyncio.to_thread(self._credentials.refresh, Request())
        return self._credentials.token

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        token = await self._access_token()
        try:
            response = await self._client.get(
                path,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.TransportError as e:
            raise StorageConnectionError(f"Drive request failed: {e}")

        if response.status_code in RETRYABLE_STATUS:
            retry_after = response.headers.get("Retry-After")
            raise StorageRateLimitError(
                f"Drive HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
                retry_after=float(retry_after) if retry_after else None,
            )
        if response.status_code == 404:
            raise FileNotFoundError(f"Drive resource not found: {path}")
        if response.status_code in (401, 403):
            raise StoragePermissionError(
                f"Drive access denied ({response.status_code}): {response.text[:200]}",
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise StorageError(
                f"Drive HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response.json()

    async def list_files(
        self,
        query: str,
        fields: str,
        page_size: int = 1000,
        page_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = {
            "q": query,
            "fields": fields,
            "pageSize": page_size,
            "supportsAllDrives": "true",
            "includeItemsFromAllDrives": "true",
        }
        if page_token:
            params["pageToken"] = page_token
        data = await self._get("/files", params)
        data["files"] = [FileInfo(f) for f in data.get("files", [])]
        return data

    async def get_file(self, file_id: str, fields: str) -> FileInfo:
        data = await self._get(
            f"/files/{file_id}",
            {"fields": fields, "supportsAllDrives": "true"},
        )
        return FileInfo(data)

    async def list_changes(
        self,
        page_token: str,
        fields: str,
        page_size: int = 1000,
    ) -> Dict[str, Any]:
        return await self._get(
            "/changes",
            {
                "pageToken": page_token,
                "fields": fields,
                "pageSize": page_size,
                "includeRemoved": "false",
                "spaces": "drive",
                "supportsAllDrives": "true",
                "includeItemsFromAllDrives": "true",
            },
        )

    async def get_start_page_token(self) -> str:
        data = await self._get("/changes/startPageToken", {"supportsAllDrives": "true"})
        return data["startPageToken"]

    async def test_connection(self) -> bool:
        try:
            await self._get("/about", {"fields": "user"})
            return True
        except (StorageError, FileNotFoundError) as e:
            logger.warning(f"Drive connection test failed: {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()
