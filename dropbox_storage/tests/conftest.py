from __future__ import annotations

from typing import BinaryIO, Dict, Iterator, List, Optional

import pytest

from dropbox_storage.core import instrumentation
from dropbox_storage.core.errors import FileNotFoundError
from dropbox_storage.database.models import Blob
from dropbox_storage.storage.service import DEFAULT_CHUNK_SIZE, StorageService


class InMemoryService(StorageService):
    """Storage service keeping files in a dict, for exercising the host layer."""

    service_name = "InMemory"

    def __init__(self, tmpdir: Optional[str] = None):
        super().__init__(tmpdir=tmpdir)
        self.files: Dict[str, bytes] = {}
        self.uploads: List[dict] = []
        self.deleted_prefixes: List[str] = []

    def upload(self, key, io: BinaryIO, checksum=None, content_type=None, disposition=None, filename=None):
        with self.instrument("upload", key=key, checksum=checksum):
            self.uploads.append(
                {
                    "key": key,
                    "checksum": checksum,
                    "content_type": content_type,
                    "disposition": disposition,
                    "filename": filename,
                }
            )
            self.files[key] = io.read()

    def download(self, key):
        with self.instrument("download", key=key):
            if key not in self.files:
                raise FileNotFoundError(key)
            return self.files[key]

    def download_chunks(self, key, chunk_size=DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        data = self.download(key)
        for offset in range(0, len(data), chunk_size):
            yield data[offset:offset + chunk_size]

    def delete(self, key):
        self.files.pop(key, None)

    def delete_prefixed(self, prefix):
        self.deleted_prefixes.append(prefix)
        for key in [k for k in self.files if k.startswith(prefix)]:
            del self.files[key]

    def exists(self, key):
        return key in self.files

    def url(self, key, expires_in=None, filename=None, disposition=None, content_type=None):
        return f"https://files.example.com/{key}/{filename}?disposition={disposition}&expires_in={expires_in}"


@pytest.fixture
def memory_service(tmp_path) -> InMemoryService:
    return InMemoryService(tmpdir=str(tmp_path))


@pytest.fixture
def events():
    received = []

    def record(name, payload):
        received.append((name, dict(payload)))

    instrumentation.subscribe(record)
    yield received
    instrumentation.unsubscribe(record)


@pytest.fixture(autouse=True)
def restore_blob_metadata_settings():
    saved = (
        Blob.include_filename_in_service_metadata,
        Blob.content_types_to_serve_as_binary,
        Blob.content_types_allowed_inline,
    )
    yield
    (
        Blob.include_filename_in_service_metadata,
        Blob.content_types_to_serve_as_binary,
        Blob.content_types_allowed_inline,
    ) = saved
