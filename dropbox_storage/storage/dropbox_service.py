"""Dropbox storage service using the official Dropbox SDK.

Dropbox does not support setting the download filename via Content-Disposition:
https://www.dropboxforum.com/t5/Discuss-Developer-API/Content-Disposition-in-dropbox/td-p/340864
Until it does, every file gets its own folder named after the key, and the file
inside keeps its original filename: ``/<key>/<filename>``.
"""

from __future__ import annotations

import hashlib
from typing import BinaryIO, Iterator, Optional

import dropbox
from dropbox.exceptions import ApiError
from dropbox.files import CommitInfo, UploadSessionCursor, WriteMode

from dropbox_storage.core.errors import FileNotFoundError, IntegrityError
from dropbox_storage.storage.service import DEFAULT_CHUNK_SIZE, StorageService
from dropbox_storage.utils.filesystem import encode_checksum, file_path, folder_path

UPLOAD_CHUNK_SIZE = 4 * 1024 * 1024


def is_not_found(exc: ApiError) -> bool:
    """True when a Dropbox API error reports a missing path."""
    reason = exc.error
    for variant in ("path", "path_lookup"):
        is_variant = getattr(reason, f"is_{variant}", None)
        if is_variant is None or not is_variant():
            continue
        lookup = getattr(reason, f"get_{variant}")()
        is_missing = getattr(lookup, "is_not_found", None)
        return bool(is_missing is not None and is_missing())
    return False


class DropboxService(StorageService):
    """Storage service for Dropbox."""

    service_name = "Dropbox"

    def __init__(
        self,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        app_key: Optional[str] = None,
        app_secret: Optional[str] = None,
        chunk_size: int = UPLOAD_CHUNK_SIZE,
        timeout: float = 100.0,
        tmpdir: Optional[str] = None,
    ):
        """
        Initialize Dropbox storage service.

        The SDK client is created on first use.

        Args:
            access_token: Dropbox OAuth2 access token
            refresh_token: Long-lived refresh token (alternative to access_token)
            app_key: Dropbox app key, required with refresh_token
            app_secret: Dropbox app secret
            chunk_size: Upload chunk size in bytes
            timeout: SDK request timeout in seconds
            tmpdir: Directory for temp files created by open()
        """
        super().__init__(tmpdir=tmpdir)
        if not access_token and not refresh_token:
            raise ValueError("Dropbox access_token or refresh_token is required")

        self.access_token = access_token
        self.refresh_token = refresh_token
        self.app_key = app_key
        self.app_secret = app_secret
        self.chunk_size = chunk_size
        self.timeout = timeout
        self._client: Optional[dropbox.Dropbox] = None

    @property
    def client(self) -> dropbox.Dropbox:
        if self._client is None:
            self._client = dropbox.Dropbox(
                oauth2_access_token=self.access_token,
                oauth2_refresh_token=self.refresh_token,
                app_key=self.app_key,
                app_secret=self.app_secret,
                timeout=self.timeout,
            )
        return self._client

    def upload(
        self,
        key: str,
        io: BinaryIO,
        checksum: Optional[str] = None,
        content_type: Optional[str] = None,
        disposition: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> None:
        """Upload io to /<key>/<filename>."""
        if not filename:
            raise ValueError(f"A filename is required to upload to Dropbox: {key}")

        with self.instrument("upload", key=key, checksum=checksum):
            try:
                self._upload_by_chunks(file_path(key, filename), io, checksum)
            except ApiError as exc:
                raise IntegrityError(f"Failed to upload to Dropbox: {key}") from exc

    def download(self, key: str) -> bytes:
        """Read file from Dropbox."""
        with self.instrument("download", key=key):
            try:
                _, response = self.client.files_download(self._file_path_for(key))
            except ApiError as exc:
                if is_not_found(exc):
                    raise FileNotFoundError(f"File not found in Dropbox: {key}") from exc
                raise
            try:
                return response.content
            finally:
                response.close()

    def download_chunks(self, key: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        """Stream file from Dropbox."""
        with self.instrument("streaming_download", key=key):
            try:
                _, response = self.client.files_download(self._file_path_for(key))
            except ApiError as exc:
                if is_not_found(exc):
                    raise FileNotFoundError(f"File not found in Dropbox: {key}") from exc
                raise
            try:
                for chunk in response.iter_content(chunk_size=chunk_size):
                    if chunk:
                        yield chunk
            finally:
                response.close()

    def delete(self, key: str) -> None:
        """Delete the key folder and the file inside it."""
        with self.instrument("delete", key=key):
            self._delete_path(folder_path(key))

    def delete_prefixed(self, prefix: str) -> None:
        """Delete the folder named by the prefix, e.g. "variants/abc/"."""
        with self.instrument("delete_prefixed", prefix=prefix):
            self._delete_path(folder_path(prefix.rstrip("/")))

    def exists(self, key: str) -> bool:
        with self.instrument("exist", key=key) as payload:
            try:
                answer = self.client.files_get_metadata(self._file_path_for(key)) is not None
            except FileNotFoundError:
                answer = False
            except ApiError as exc:
                if not is_not_found(exc):
                    raise
                answer = False
            payload["exist"] = answer
            return answer

    def url(
        self,
        key: str,
        expires_in: Optional[int] = None,
        filename: Optional[str] = None,
        disposition: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Return a temporary link to the file at the key.

        Dropbox temporary links always expire after four hours and serve the
        stored filename, so expires_in, filename, disposition and content_type
        have no effect.
        """
        with self.instrument("url", key=key) as payload:
            try:
                generated_url = self.client.files_get_temporary_link(self._file_path_for(key)).link
            except ApiError as exc:
                if is_not_found(exc):
                    raise FileNotFoundError(f"File not found in Dropbox: {key}") from exc
                raise
            payload["url"] = generated_url
            return generated_url

    def _file_path_for(self, key: str) -> str:
        """Resolve the single file stored in the key folder."""
        try:
            result = self.client.files_list_folder(folder_path(key), limit=1)
        except ApiError as exc:
            if is_not_found(exc):
                raise FileNotFoundError(f"File not found in Dropbox: {key}") from exc
            raise
        if not result.entries:
            raise FileNotFoundError(f"Empty folder in Dropbox: {key}")
        return f"{folder_path(key)}/{result.entries[0].name}"

    def _delete_path(self, path: str) -> None:
        try:
            # Contents are deleted too when the path is a folder
            self.client.files_delete_v2(path)
        except ApiError as exc:
            # Ignore files already deleted
            if not is_not_found(exc):
                raise

    def _upload_by_chunks(self, path: str, io: BinaryIO, checksum: Optional[str]) -> None:
        md5 = hashlib.md5()

        def read_chunk() -> bytes:
            data = io.read(self.chunk_size)
            md5.update(data)
            return data

        chunk = read_chunk()
        following = read_chunk()

        if not following:
            self._ensure_integrity(path, md5, checksum)
            self.client.files_upload(chunk, path, mode=WriteMode.add)
            return

        session = self.client.files_upload_session_start(chunk)
        cursor = UploadSessionCursor(session_id=session.session_id, offset=len(chunk))
        chunk = following

        while True:
            following = read_chunk()
            if not following:
                break
            self.client.files_upload_session_append_v2(chunk, cursor)
            cursor.offset += len(chunk)
            chunk = following

        # Never commit a session whose content does not match the checksum
        self._ensure_integrity(path, md5, checksum)
        self.client.files_upload_session_finish(
            chunk, cursor, CommitInfo(path=path, mode=WriteMode.add)
        )

    @staticmethod
    def _ensure_integrity(path: str, md5, checksum: Optional[str]) -> None:
        if checksum is None:
            return
        actual = encode_checksum(md5.digest())
        if actual != checksum:
            raise IntegrityError(f"Checksum mismatch for {path}: expected {checksum}, got {actual}")
