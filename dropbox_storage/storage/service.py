"""Abstract storage service interface."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, BinaryIO, ContextManager, Dict, Iterator, Optional

from dropbox_storage.core.instrumentation import instrument
from dropbox_storage.storage.downloader import Downloader

logger = logging.getLogger("dropbox_storage.storage")

DEFAULT_CHUNK_SIZE = 5 * 1024 * 1024


class StorageService(ABC):
    """Abstract interface for attachment storage services."""

    service_name = "Storage"

    def __init__(self, tmpdir: Optional[str] = None):
        self.tmpdir = tmpdir

    @abstractmethod
    def upload(
        self,
        key: str,
        io: BinaryIO,
        checksum: Optional[str] = None,
        content_type: Optional[str] = None,
        disposition: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> None:
        """
        Upload the io to the key.

        Args:
            key: Storage key (e.g., "xtapjjcjiudrlk3tmwyjgpuobabd")
            io: Readable binary stream
            checksum: Base64 MD5 of the content, verified when given
            content_type: MIME type of the content
            disposition: "inline" or "attachment"
            filename: Original filename of the attachment

        Raises:
            IntegrityError: If the content could not be stored intact
        """
        pass

    @abstractmethod
    def download(self, key: str) -> bytes:
        """
        Return the content of the file at the key.

        Raises:
            FileNotFoundError: If nothing is stored under the key
        """
        pass

    @abstractmethod
    def download_chunks(self, key: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        """
        Stream the content of the file at the key in chunks.

        Raises:
            FileNotFoundError: If nothing is stored under the key
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete the file at the key. Missing files are ignored."""
        pass

    @abstractmethod
    def delete_prefixed(self, prefix: str) -> None:
        """Delete every file whose key starts with the prefix (e.g., "variants/abc/")."""
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Return True if a file is stored under the key."""
        pass

    @abstractmethod
    def url(
        self,
        key: str,
        expires_in: Optional[int] = None,
        filename: Optional[str] = None,
        disposition: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> str:
        """Return a URL the file at the key can be fetched from."""
        pass

    @contextmanager
    def open(
        self,
        key: str,
        checksum: Optional[str] = None,
        verify: bool = True,
        suffix: str = "",
        tmpdir: Optional[str] = None,
    ) -> Iterator[str]:
        """Download the file at the key to a temp file and yield its path."""
        with Downloader(self).open(
            key,
            checksum=checksum,
            verify=verify,
            suffix=suffix,
            tmpdir=tmpdir or self.tmpdir,
        ) as path:
            yield path

    def instrument(self, operation: str, **payload: Any) -> ContextManager[Dict[str, Any]]:
        return instrument(operation, logger, service=self.service_name, **payload)
