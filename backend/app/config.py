from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str = "postgresql+psycopg2://taskboard:taskboard_dev@db:5432/taskboard"
    environment: str = "development"
    run_migrations_on_startup: bool = True

    # Blob storage settings
    storage_bucket: str = "task_bk"
    storage_base_path: Path = Path("/var/lib/taskboard/storage")
    public_base_url: str = "http://localhost:8000"

    # File upload settings
    max_image_size_bytes: int = 10 * 1024 * 1024  # 10 MB
    allowed_image_types: list[str] = ["image/png", "image/jpeg", "image/gif", "image/webp"]


settings = Settings()
