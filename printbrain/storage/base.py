"""Base file-tree driver interface."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


class FileInfo(Dict[str, Any]):
    """File resource dict with typed access."""

    @property
    def id(self) -> str:
        return self["id"]

    @property
    def name(self) -> str:
        return self.get("name", "")

    @property
    def mime_type(self) -> str:
        return self.get("mimeType", "")

    @property
    def size_bytes(self) -> int:
        return int(self.get("size") or 0)

    @property
    def md5(self) -> Optional[str]:
        return self.get("md5Checksum")

    @property
    def parents(self) -> List[str]:
        return self.get("parents") or []

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE


class BaseFileTreeDriver(ABC):
    """Base class for read-only file-tree services.

    Drivers expose the listing and change-feed operations the scanner
    needs. No driver fetches file bodies.
    """

    def __init__(self, config: Dict[str, Any]):
        """Initialize driver with configuration.

        Args:
            config: Provider-specific settings (credentials path, root folder)
        """
        self.config = config

    @abstractmethod
    async def list_files(
        self,
        query: str,
        fields: str,
        page_size: int = 1000,
        page_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """List one page of files matching a query.

        Returns:
            Dict with ``files`` (list of FileInfo) and optional ``nextPageToken``

        Raises:
            StorageError: If listing fails
        """
        pass

    @abstractmethod
    async def get_file(self, file_id: str, fields: str) -> FileInfo:
        """Get file metadata by id.

        Raises:
            FileNotFoundError: If the file doesn't exist
            StorageError: If the call fails
        """
        pass

    @abstractmethod
    async def list_changes(
        self,
        page_token: str,
        fields: str,
        page_size: int = 1000,
    ) -> Dict[str, Any]:
        """List one page of the change feed starting at ``page_token``.

        Returns:
            Dict with ``changes`` and either ``nextPageToken`` or ``newStartPageToken``
        """
        pass

    @abstractmethod
    async def get_start_page_token(self) -> str:
        """Get a fresh change-feed cursor."""
        pass

    @abstractmethod
    async def test_connection(self) -> bool:
        """Test if the service is reachable with the configured credentials."""
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None


class StorageError(Exception):
    """Base exception for storage operations."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StorageConnectionError(StorageError):
    """Exception for connection errors."""

    pass


class StoragePermissionError(StorageError):
    """Exception for permission errors."""

    pass


class StorageRateLimitError(StorageError):
    """Exception for rate-limit and transient server errors (429/500/503)."""

    def __init__(self, message: str, status_code: Optional[int] = None, retry_after: Optional[float] = None):
        super().__init__(message, status_code)
        self.retry_after = retry_after
