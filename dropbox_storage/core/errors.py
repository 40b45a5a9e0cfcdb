from __future__ import annotations


class StorageError(Exception):
    error_type = "UNKNOWN"


class IntegrityError(StorageError):
    error_type = "INTEGRITY"


class FileNotFoundError(StorageError):
    error_type = "NOT_FOUND"


def classify_error(error: Exception) -> str:
    if hasattr(error, "error_type"):
        return getattr(error, "error_type")

    message = str(error).lower()

    if "checksum" in message or "integrity" in message:
        return "INTEGRITY"

    if "not_found" in message or "not found" in message:
        return "NOT_FOUND"

    return "UNKNOWN"
