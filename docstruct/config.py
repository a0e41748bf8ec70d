"""Application configuration loaded from environment variables."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    database_url: str = Field(
        default="sqlite:///data/docstruct.db",
        description="SQLAlchemy URL of the document/section store.",
    )
    database_echo: bool = False

    upload_dir: str = "uploads"
    temp_dir_name: str = "temp"

    worker_count: int = Field(default=5, ge=1)
    pending_batch_size: int = Field(default=10, ge=1)

    max_hierarchy_depth: int = Field(default=64, ge=1)
    strict_nesting: bool = False

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def upload_dir_path(self) -> Path:
        return Path(self.upload_dir)

    @property
    def temp_dir_path(self) -> Path:
        return self.upload_dir_path / self.temp_dir_name


settings = Settings()
