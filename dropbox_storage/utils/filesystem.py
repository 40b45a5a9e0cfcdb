from __future__ import annotations

import base64
import hashlib
from typing import BinaryIO

# Characters replaced with "-" so a filename stays a single path segment
_UNSAFE_FILENAME_CHARS = "\u202e%$|:;/\t\r\n\\"
_UNSAFE_TRANSLATION = str.maketrans({char: "-" for char in _UNSAFE_FILENAME_CHARS})


def sanitize_filename(filename: str) -> str:
    return filename.strip().translate(_UNSAFE_TRANSLATION)


def folder_path(key: str) -> str:
    return "/" + key.lstrip("/")


def file_path(key: str, filename: str) -> str:
    return f"{folder_path(key)}/{sanitize_filename(filename)}"


def encode_checksum(digest: bytes) -> str:
    return base64.b64encode(digest).decode("ascii")


def compute_checksum(io: BinaryIO, chunk_size: int = 5 * 1024 * 1024) -> str:
    """Base64 MD5 of the stream contents; rewinds the stream afterwards."""
    md5 = hashlib.md5()
    while True:
        chunk = io.read(chunk_size)
        if not chunk:
            break
        md5.update(chunk)
    io.seek(0)
    return encode_checksum(md5.digest())
