"""API settings."""
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    sqlite_path: str = "/data/jobs.db"
    artifact_dir: str = "/data/artifacts"
    upload_dir: str = "/tmp/uploads"
    max_upload_mb: int = 50
    max_batch_size: int = 500
    sync_max_rows: int = 50
    lease_seconds: float = 60.0

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings."""
    return Settings()
