from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _resolve_path(value: str, fallback: str) -> str:
    raw = (value or "").strip() or fallback
    path = Path(raw)
    if not path.is_absolute():
        path = (PROJECT_ROOT / path).resolve()
    return str(path)


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=PROJECT_ROOT / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    ENVIRONMENT: str = "development"
    DATABASE_URL: str = "sqlite:///vanish.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_FILE_PATH: str = ""
    LOG_MAX_BYTES: int = 10 * 1024 * 1024
    LOG_BACKUP_COUNT: int = 5

    # URLs
    BASE_URL: str = "http://127.0.0.1:8000"

    # Storage
    UPLOAD_ROOT: str = "storage"
    STORAGE_BACKEND: str = "local"
    SHARE_STORE_BACKEND: str = "database"
    UPLOAD_CHUNK_SIZE_BYTES: int = 1024 * 1024

    # Feature flags
    DEAD_DROP_ENABLED: bool = True
    SHARE_ENABLED: bool = True

    # Dead drop
    MAX_FILE_SIZE_BYTES: int = 100 * 1024 * 1024
    DEFAULT_EXPIRY_MINUTES: int = 60
    MAX_EXPIRY_MINUTES: int = 60 * 24 * 7
    DEFAULT_MAX_DOWNLOADS: int = 1
    ALLOWED_MAX_DOWNLOADS: list[int] = [1, 5, 10, -1]
    ALLOWED_MIME_TYPES: list[str] = [
        "image/*",
        "video/*",
        "audio/*",
        "application/pdf",
        "application/zip",
        "application/x-rar-compressed",
        "application/x-7z-compressed",
        "text/*",
        "application/json",
        "application/xml",
    ]
    UPLOAD_SESSION_TTL_MINUTES: int = 30
    DOWNLOAD_TOKEN_TTL_MINUTES: int = 5

    # Shares
    MAX_SHARE_TEXT_SIZE: int = 1024 * 1024
    MAX_SHARE_IMAGE_BYTES: int = 5 * 1024 * 1024
    DEFAULT_SHARE_EXPIRY_MINUTES: int = 60
    MAX_SHARE_EXPIRY_MINUTES: int = 60 * 24 * 30

    # Concurrency
    OPTIMISTIC_RETRY_ATTEMPTS: int = 3
    CODE_RESERVATION_ATTEMPTS: int = 10

    # Maintenance
    CRON_SECRET: str = ""

    @model_validator(mode="after")
    def normalize_and_validate(self) -> "AppSettings":
        self.ENVIRONMENT = (self.ENVIRONMENT or "development").strip().lower()
        self.LOG_LEVEL = (self.LOG_LEVEL or "INFO").upper()
        self.LOG_DIR = _resolve_path(self.LOG_DIR, "logs")
        self.LOG_FILE_PATH = _resolve_path(self.LOG_FILE_PATH, str(Path(self.LOG_DIR) / "vanish.log"))
        self.BASE_URL = (self.BASE_URL or "http://127.0.0.1:8000").strip().rstrip("/")
        self.UPLOAD_ROOT = _resolve_path(self.UPLOAD_ROOT, "storage")
        self.STORAGE_BACKEND = (self.STORAGE_BACKEND or "none").strip().lower()
        self.SHARE_STORE_BACKEND = (self.SHARE_STORE_BACKEND or "database").strip().lower()
        self.CRON_SECRET = (self.CRON_SECRET or "").strip()

        if self.STORAGE_BACKEND not in {"local", "none"}:
            raise RuntimeError("STORAGE_BACKEND must be 'local' or 'none'.")
        if self.SHARE_STORE_BACKEND not in {"database", "blob"}:
            raise RuntimeError("SHARE_STORE_BACKEND must be 'database' or 'blob'.")
        if self.OPTIMISTIC_RETRY_ATTEMPTS < 1:
            raise RuntimeError("OPTIMISTIC_RETRY_ATTEMPTS must be at least 1.")
        if self.DEFAULT_MAX_DOWNLOADS not in self.ALLOWED_MAX_DOWNLOADS:
            raise RuntimeError("DEFAULT_MAX_DOWNLOADS must be one of ALLOWED_MAX_DOWNLOADS.")
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


settings = AppSettings()
