"""File-tree driver factory."""

from printbrain.config import Settings, settings as default_settings
from printbrain.storage.base import BaseFileTreeDriver, StorageError
from printbrain.storage.drive_driver import GoogleDriveDriver


def get_drive_driver(settings: Settings = default_settings) -> BaseFileTreeDriver:
    """Build the Drive driver from application settings.

    Raises:
        StorageError: If no root folder is configured
    """
    if not settings.google_drive_folder_id:
        raise StorageError("GOOGLE_DRIVE_FOLDER_ID is not configured")

    return GoogleDriveDriver(
        {
            "service_account_key_path": settings.google_service_account_key_path,
            "service_account_info": settings.google_service_account_key,
        }
    )
