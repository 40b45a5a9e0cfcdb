"""Downloads stored files to local temp files for callers that need a path."""

from __future__ import annotations

import hashlib
import os
import tempfile
from contextlib import contextmanager
from typing import TYPE_CHECKING, Generator, Optional

from dropbox_storage.core.errors import IntegrityError
from dropbox_storage.utils.filesystem import encode_checksum

if TYPE_CHECKING:
    from dropbox_storage.storage.service import StorageService


class Downloader:
    """Streams a stored file into a temp file, verifying its checksum."""

    def __init__(self, service: StorageService):
        """
        Initialize downloader.

        Args:
            service: Storage service to download files from
        """
        self.service = service

    @contextmanager
    def open(
        self,
        key: str,
        checksum: Optional[str] = None,
        verify: bool = True,
        suffix: str = "",
        tmpdir: Optional[str] = None,
    ) -> Generator[str, None, None]:
        """
        Download file from storage to temporary local file.

        Context manager that:
        1. Streams the file from storage to a temp location
        2. Verifies the base64 MD5 checksum when one is given
        3. Yields the temp file path
        4. Deletes the temp file on exit

        Args:
            key: Storage key to download
            checksum: Expected base64 MD5 of the content
            verify: Set to False to skip checksum verification
            suffix: File suffix/extension (e.g., ".pdf")
            tmpdir: Directory for the temp file (default: system temp dir)

        Yields:
            Absolute path to temporary file

        Raises:
            IntegrityError: If the downloaded content does not match the checksum

        Example:
            with downloader.open(blob.key, checksum=blob.checksum, suffix=".pdf") as temp_path:
                text = parse_pdf(temp_path)
            # Temp file is automatically deleted
        """
        temp_fd, temp_path = tempfile.mkstemp(prefix="dropbox_storage-", suffix=suffix, dir=tmpdir)

        try:
            md5 = hashlib.md5()
            with os.fdopen(temp_fd, "wb") as handle:
                for chunk in self.service.download_chunks(key):
                    handle.write(chunk)
                    md5.update(chunk)

            if verify and checksum is not None:
                actual = encode_checksum(md5.digest())
                if actual != checksum:
                    raise IntegrityError(
                        f"Checksum mismatch for {key}: expected {checksum}, got {actual}"
                    )

            yield temp_path

        finally:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
