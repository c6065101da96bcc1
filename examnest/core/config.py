from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from examnest.core.catalog import ADMIN_CREDENTIALS, MAX_UPLOAD_MB, SNAPSHOT_CACHE_KEY


REPO_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    backend_url: str | None = Field(default=None, alias="EXAMNEST_BACKEND_URL")
    backend_key: str | None = Field(default=None, alias="EXAMNEST_BACKEND_KEY")

    storage_bucket: str = Field(default="resources", alias="EXAMNEST_STORAGE_BUCKET")
    files_table: str = Field(default="academic_files", alias="EXAMNEST_FILES_TABLE")
    subjects_table: str = Field(default="subjects", alias="EXAMNEST_SUBJECTS_TABLE")
    categories_table: str = Field(default="categories", alias="EXAMNEST_CATEGORIES_TABLE")
    feedback_table: str = Field(default="feedback", alias="EXAMNEST_FEEDBACK_TABLE")

    admin_username: str = Field(default=ADMIN_CREDENTIALS[0], alias="EXAMNEST_ADMIN_USERNAME")
    admin_password: str = Field(default=ADMIN_CREDENTIALS[1], alias="EXAMNEST_ADMIN_PASSWORD")

    max_upload_mb: int = Field(default=MAX_UPLOAD_MB, ge=1, alias="EXAMNEST_MAX_UPLOAD_MB")
    request_timeout_seconds: float = Field(default=30.0, gt=0.0, alias="EXAMNEST_REQUEST_TIMEOUT_SECONDS")

    state_dir: str = Field(default=".examnest_state", alias="EXAMNEST_STATE_DIR")
    downloads_dir: str = Field(default="downloads", alias="EXAMNEST_DOWNLOADS_DIR")
    log_level: str = Field(default="INFO", alias="EXAMNEST_LOG_LEVEL")
    log_file: str = Field(default="examnest.log", alias="EXAMNEST_LOG_FILE")

    def resolve_path(self, path_value: str) -> Path:
        candidate = Path(path_value).expanduser()
        if candidate.is_absolute():
            return candidate
        return REPO_ROOT / candidate

    @property
    def state_path(self) -> Path:
        return self.resolve_path(self.state_dir)

    @property
    def downloads_path(self) -> Path:
        return self.resolve_path(self.downloads_dir)

    @property
    def snapshot_path(self) -> Path:
        return self.state_path / f"{SNAPSHOT_CACHE_KEY}.json"

    @property
    def log_path(self) -> Path:
        return self.state_path / self.log_file

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    def require_backend(self) -> tuple[str, str]:
        missing = [
            name
            for name, value in (
                ("EXAMNEST_BACKEND_URL", self.backend_url),
                ("EXAMNEST_BACKEND_KEY", self.backend_key),
            )
            if not value
        ]
        if missing:
            raise RuntimeError(f"Missing backend configuration: set {', '.join(missing)} (environment or .env)")
        return str(self.backend_url).rstrip("/"), str(self.backend_key)

    def ensure_runtime_dirs(self) -> None:
        self.state_path.mkdir(parents=True, exist_ok=True)
        self.downloads_path.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    settings.ensure_runtime_dirs()
    return settings
