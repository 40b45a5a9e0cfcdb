import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_CONTENT_TYPES_TO_SERVE_AS_BINARY = (
    "text/html",
    "image/svg+xml",
    "application/xml",
    "application/xhtml+xml",
    "application/mathml+xml",
    "text/cache-manifest",
)

DEFAULT_CONTENT_TYPES_ALLOWED_INLINE = (
    "image/png",
    "image/gif",
    "image/jpeg",
    "image/tiff",
    "image/bmp",
    "image/vnd.adobe.photoshop",
    "image/vnd.microsoft.icon",
    "application/pdf",
)


def _load_dotenv() -> None:
    # Prefer the .env next to the package, then fall back to cwd resolution
    env_path = Path(__file__).resolve().parent / ".env"
    load_dotenv(dotenv_path=env_path, override=False)
    load_dotenv(override=False)


def _split_csv(raw: str | None, default: tuple) -> tuple:
    if raw is None or not raw.strip():
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Config:
    # Dropbox
    dropbox_access_token: str | None = None
    dropbox_refresh_token: str | None = None
    dropbox_app_key: str | None = None
    dropbox_app_secret: str | None = None
    dropbox_chunk_size: int = 4 * 1024 * 1024
    dropbox_timeout_seconds: float = 100.0

    # Database (blob records); optional when only the service is used
    database_url: str | None = None
    database_max_connections: int = 10
    database_timeout_seconds: int = 30

    # Attachment metadata
    content_types_to_serve_as_binary: tuple = DEFAULT_CONTENT_TYPES_TO_SERVE_AS_BINARY
    content_types_allowed_inline: tuple = DEFAULT_CONTENT_TYPES_ALLOWED_INLINE

    # Downloads
    storage_tmp_dir: str | None = None

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_file_path: str | None = None

    def validate(self) -> None:
        if not self.dropbox_access_token and not self.dropbox_refresh_token:
            raise ValueError("DROPBOX_ACCESS_TOKEN or DROPBOX_REFRESH_TOKEN is required")

        if self.dropbox_refresh_token and not self.dropbox_app_key:
            raise ValueError("DROPBOX_APP_KEY is required when DROPBOX_REFRESH_TOKEN is set")

        # Dropbox caps a single upload request at 150 MiB
        if self.dropbox_chunk_size < 1 or self.dropbox_chunk_size > 150 * 1024 * 1024:
            raise ValueError("DROPBOX_CHUNK_SIZE must be between 1 byte and 150 MiB")

        if self.dropbox_timeout_seconds <= 0:
            raise ValueError("DROPBOX_TIMEOUT must be > 0")

        if self.database_url and not (
            self.database_url.startswith("postgresql://")
            or self.database_url.startswith("postgresql+psycopg://")
            or self.database_url.startswith("sqlite://")
        ):
            raise ValueError(
                "DATABASE_URL must start with 'postgresql://', 'postgresql+psycopg://', or 'sqlite://'"
            )

        if self.database_max_connections < 1 or self.database_max_connections > 50:
            raise ValueError("DATABASE_MAX_CONNECTIONS must be between 1 and 50")

        if self.database_timeout_seconds < 1 or self.database_timeout_seconds > 120:
            raise ValueError("DATABASE_TIMEOUT must be between 1 and 120 seconds")

        if self.log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("LOG_LEVEL must be DEBUG, INFO, WARNING, ERROR, or CRITICAL")

        if self.log_format not in {"json", "text"}:
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")

        if self.storage_tmp_dir:
            tmp_dir = Path(self.storage_tmp_dir)
            if not tmp_dir.is_dir():
                raise ValueError(f"STORAGE_TMP_DIR does not exist: {self.storage_tmp_dir}")
            if not os.access(tmp_dir, os.W_OK):
                raise ValueError(f"STORAGE_TMP_DIR is not writable: {self.storage_tmp_dir}")

    def create_storage_service(self):
        """
        Create the Dropbox storage service and install the metadata hook.

        Returns:
            DropboxService instance
        """
        from dropbox_storage import integration
        from dropbox_storage.core.logging import setup_logger
        from dropbox_storage.storage import DropboxService

        setup_logger("dropbox_storage", self)
        integration.install(self)

        return DropboxService(
            access_token=self.dropbox_access_token,
            refresh_token=self.dropbox_refresh_token,
            app_key=self.dropbox_app_key,
            app_secret=self.dropbox_app_secret,
            chunk_size=self.dropbox_chunk_size,
            timeout=self.dropbox_timeout_seconds,
            tmpdir=self.storage_tmp_dir,
        )


def load_config() -> Config:
    _load_dotenv()

    config = Config(
        dropbox_access_token=os.environ.get("DROPBOX_ACCESS_TOKEN"),
        dropbox_refresh_token=os.environ.get("DROPBOX_REFRESH_TOKEN"),
        dropbox_app_key=os.environ.get("DROPBOX_APP_KEY"),
        dropbox_app_secret=os.environ.get("DROPBOX_APP_SECRET"),
        dropbox_chunk_size=int(os.environ.get("DROPBOX_CHUNK_SIZE", str(4 * 1024 * 1024))),
        dropbox_timeout_seconds=float(os.environ.get("DROPBOX_TIMEOUT", "100")),
        database_url=os.environ.get("DATABASE_URL", "").strip() or None,
        database_max_connections=int(os.environ.get("DATABASE_MAX_CONNECTIONS", "10")),
        database_timeout_seconds=int(os.environ.get("DATABASE_TIMEOUT", "30")),
        content_types_to_serve_as_binary=_split_csv(
            os.environ.get("CONTENT_TYPES_TO_SERVE_AS_BINARY"),
            DEFAULT_CONTENT_TYPES_TO_SERVE_AS_BINARY,
        ),
        content_types_allowed_inline=_split_csv(
            os.environ.get("CONTENT_TYPES_ALLOWED_INLINE"),
            DEFAULT_CONTENT_TYPES_ALLOWED_INLINE,
        ),
        storage_tmp_dir=os.environ.get("STORAGE_TMP_DIR") or None,
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        log_format=os.environ.get("LOG_FORMAT", "json"),
        log_file_path=os.environ.get("LOG_FILE_PATH") or None,
    )

    config.validate()
    return config
