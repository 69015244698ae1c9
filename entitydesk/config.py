"""Application configuration."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "Entitydesk API"
    database_url: str = f"sqlite+pysqlite:///{_PROJECT_DIR / 'entitydesk.db'}"
    api_base_url: str = "http://localhost:3101"
    api_token: str | None = None
    request_timeout_seconds: float = 30.0
    default_page_size: int = 10
    max_page_size: int = 200
    cors_allowed_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    model_config = SettingsConfigDict(
        env_prefix="ENTITYDESK_",
        env_file=str(_PROJECT_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def allowed_origins(self) -> list[str]:
        """Split the comma-separated CORS origin list."""

        return [origin.strip() for origin in self.cors_allowed_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()
