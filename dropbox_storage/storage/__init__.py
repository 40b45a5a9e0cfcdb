"""Storage services for attachment files."""

from dropbox_storage.storage.downloader import Downloader
from dropbox_storage.storage.dropbox_service import DropboxService
from dropbox_storage.storage.service import StorageService

__all__ = ["StorageService", "DropboxService", "Downloader"]
