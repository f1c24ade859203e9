"""File-tree storage drivers."""

from printbrain.storage.base import (
    BaseFileTreeDriver,
    FileInfo,
    StorageConnectionError,
    StorageError,
    StoragePermissionError,
    StorageRateLimitError,
)

__all__ = [
    "BaseFileTreeDriver",
    "FileInfo",
    "StorageConnectionError",
    "StorageError",
    "StoragePermissionError",
    "StorageRateLimitError",
]
