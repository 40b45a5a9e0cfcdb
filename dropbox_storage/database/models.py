from __future__ import annotations

import secrets
import string

from sqlalchemy import JSON, BigInteger, Column, DateTime, Integer, Text, func
from sqlalchemy.orm import declarative_base

from dropbox_storage.config import (
    DEFAULT_CONTENT_TYPES_ALLOWED_INLINE,
    DEFAULT_CONTENT_TYPES_TO_SERVE_AS_BINARY,
)

Base = declarative_base()

KEY_LENGTH = 28
_KEY_ALPHABET = string.ascii_lowercase + string.digits


class Blob(Base):
    __tablename__ = "storage_blobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(Text, unique=True, nullable=False)
    filename = Column(Text, nullable=False)
    content_type = Column(Text)
    custom_metadata = Column("metadata", JSON, nullable=False, default=dict)
    byte_size = Column(BigInteger, nullable=False)
    checksum = Column(Text)
    service_name = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    BINARY_CONTENT_TYPE = "application/octet-stream"
    DISPOSITION_ATTACHMENT = "attachment"
    DISPOSITION_INLINE = "inline"

    # Set by integration.install(); services that cannot honour
    # Content-Disposition need the filename on every upload.
    include_filename_in_service_metadata = False
    content_types_to_serve_as_binary = DEFAULT_CONTENT_TYPES_TO_SERVE_AS_BINARY
    content_types_allowed_inline = DEFAULT_CONTENT_TYPES_ALLOWED_INLINE

    @staticmethod
    def generate_unique_key(length: int = KEY_LENGTH) -> str:
        return "".join(secrets.choice(_KEY_ALPHABET) for _ in range(length))

    def forcibly_serve_as_binary(self) -> bool:
        return self.content_type in self.content_types_to_serve_as_binary

    def allowed_inline(self) -> bool:
        return self.content_type in self.content_types_allowed_inline

    def service_metadata(self) -> dict:
        if self.forcibly_serve_as_binary():
            return {
                "content_type": self.BINARY_CONTENT_TYPE,
                "disposition": self.DISPOSITION_ATTACHMENT,
                "filename": self.filename,
            }
        if not self.allowed_inline():
            return {
                "content_type": self.content_type,
                "disposition": self.DISPOSITION_ATTACHMENT,
                "filename": self.filename,
            }
        if self.include_filename_in_service_metadata:
            return {"content_type": self.content_type, "filename": self.filename}
        return {"content_type": self.content_type}
