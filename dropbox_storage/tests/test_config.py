import logging

import pytest

from dropbox_storage.config import DEFAULT_CONTENT_TYPES_ALLOWED_INLINE, Config, load_config
from dropbox_storage.database.models import Blob
from dropbox_storage.storage import DropboxService


@pytest.fixture
def dropbox_env(monkeypatch):
    for name in (
        "DROPBOX_REFRESH_TOKEN",
        "DROPBOX_APP_KEY",
        "DROPBOX_APP_SECRET",
        "DATABASE_URL",
        "CONTENT_TYPES_ALLOWED_INLINE",
        "CONTENT_TYPES_TO_SERVE_AS_BINARY",
        "STORAGE_TMP_DIR",
        "LOG_FILE_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DROPBOX_ACCESS_TOKEN", "token")
    monkeypatch.setenv("LOG_LEVEL", "INFO")
    monkeypatch.setenv("LOG_FORMAT", "json")
    return monkeypatch


def test_load_config_from_environment(dropbox_env):
    dropbox_env.setenv("DROPBOX_CHUNK_SIZE", "1048576")
    dropbox_env.setenv("CONTENT_TYPES_ALLOWED_INLINE", "image/png, application/pdf")

    config = load_config()

    assert config.dropbox_access_token == "token"
    assert config.dropbox_chunk_size == 1048576
    assert config.content_types_allowed_inline == ("image/png", "application/pdf")
    assert config.database_url is None


def test_load_config_defaults_content_types(dropbox_env):
    assert load_config().content_types_allowed_inline == DEFAULT_CONTENT_TYPES_ALLOWED_INLINE


def test_validate_requires_credentials():
    with pytest.raises(ValueError, match="DROPBOX_ACCESS_TOKEN"):
        Config().validate()


def test_validate_refresh_token_requires_app_key():
    with pytest.raises(ValueError, match="DROPBOX_APP_KEY"):
        Config(dropbox_refresh_token="refresh").validate()


@pytest.mark.parametrize(
    "overrides",
    [
        {"dropbox_chunk_size": 0},
        {"dropbox_timeout_seconds": 0},
        {"database_url": "mysql://localhost/blobs"},
        {"log_level": "VERBOSE"},
        {"log_format": "xml"},
        {"storage_tmp_dir": "/does/not/exist"},
    ],
)
def test_validate_rejects_invalid_values(overrides):
    with pytest.raises(ValueError):
        Config(dropbox_access_token="token", **overrides).validate()


def test_validate_accepts_sqlite_and_tmp_dir(tmp_path):
    Config(
        dropbox_access_token="token",
        database_url="sqlite:///blobs.db",
        storage_tmp_dir=str(tmp_path),
    ).validate()


def test_create_storage_service(tmp_path):
    config = Config(dropbox_access_token="token", dropbox_chunk_size=1024, storage_tmp_dir=str(tmp_path))

    service = config.create_storage_service()

    try:
        assert isinstance(service, DropboxService)
        assert service.chunk_size == 1024
        assert service.tmpdir == str(tmp_path)
        assert Blob.include_filename_in_service_metadata is True
    finally:
        logger = logging.getLogger("dropbox_storage")
        logger.handlers.clear()
        logger.propagate = True
