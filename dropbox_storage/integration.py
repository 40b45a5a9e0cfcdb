"""Hooks the Dropbox service into attachment metadata generation.

Dropbox needs the filename of every uploaded file (see storage.dropbox_service),
so blob service metadata always carries it once this hook is installed.
"""

from __future__ import annotations

from dropbox_storage.config import Config
from dropbox_storage.database.models import Blob


def install(config: Config | None = None) -> None:
    Blob.include_filename_in_service_metadata = True
    if config is not None:
        Blob.content_types_to_serve_as_binary = tuple(config.content_types_to_serve_as_binary)
        Blob.content_types_allowed_inline = tuple(config.content_types_allowed_inline)


def uninstall() -> None:
    Blob.include_filename_in_service_metadata = False
