from __future__ import annotations

import logging
import os
from typing import Any, BinaryIO, Dict, Optional

from sqlalchemy.orm import Session

from dropbox_storage.core.logging import log_context
from dropbox_storage.database.models import Blob
from dropbox_storage.storage.service import StorageService
from dropbox_storage.utils.filesystem import compute_checksum, sanitize_filename

logger = logging.getLogger("dropbox_storage.blobs")

VARIANTS_PREFIX = "variants"


def _byte_size(io: BinaryIO) -> int:
    io.seek(0, os.SEEK_END)
    size = io.tell()
    io.seek(0)
    return size


def build_blob(
    io: BinaryIO,
    filename: str,
    service: StorageService,
    content_type: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Blob:
    """Build an unsaved blob record describing the io (the io must be seekable)."""
    return Blob(
        key=Blob.generate_unique_key(),
        filename=sanitize_filename(filename),
        content_type=content_type or Blob.BINARY_CONTENT_TYPE,
        custom_metadata=dict(metadata or {}),
        byte_size=_byte_size(io),
        checksum=compute_checksum(io),
        service_name=service.service_name,
    )


def create_and_upload(
    session: Session,
    service: StorageService,
    io: BinaryIO,
    filename: str,
    content_type: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Blob:
    blob = build_blob(io, filename, service, content_type=content_type, metadata=metadata)
    session.add(blob)
    session.flush()

    with log_context(logger, blob_key=blob.key):
        logger.info(f"[Blobs] Uploading {blob.filename} ({blob.byte_size} bytes)")
        service.upload(blob.key, io, checksum=blob.checksum, **blob.service_metadata())

    return blob


def get_blob_by_key(session: Session, key: str) -> Blob | None:
    return session.query(Blob).filter(Blob.key == key).one_or_none()


def download_blob(service: StorageService, blob: Blob) -> bytes:
    return service.download(blob.key)


def blob_url(
    service: StorageService,
    blob: Blob,
    expires_in: int = 300,
    disposition: Optional[str] = None,
) -> str:
    if disposition is None:
        disposition = (
            Blob.DISPOSITION_INLINE
            if blob.allowed_inline() and not blob.forcibly_serve_as_binary()
            else Blob.DISPOSITION_ATTACHMENT
        )
    return service.url(
        blob.key,
        expires_in=expires_in,
        filename=blob.filename,
        disposition=disposition,
        content_type=blob.content_type,
    )


def purge_blob(session: Session, service: StorageService, blob: Blob) -> None:
    """Delete the stored file, its variants and the blob record."""
    with log_context(logger, blob_key=blob.key):
        logger.info(f"[Blobs] Purging {blob.filename}")
        service.delete(blob.key)
        service.delete_prefixed(f"{VARIANTS_PREFIX}/{blob.key}/")
    session.delete(blob)
    session.flush()
