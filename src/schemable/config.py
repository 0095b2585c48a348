"""Settings for opening database clients.

Values come from ``SCHEMABLE_*`` environment variables or a ``.env`` file:

    SCHEMABLE_DATABASE_URL=sqlite+aiosqlite:///app.db
    SCHEMABLE_LOG_QUERIES=true
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = Field("sqlite+aiosqlite:///schemable.db")
    echo: bool = Field(False)
    log_queries: bool = Field(False)

    model_config = SettingsConfigDict(
        env_prefix="SCHEMABLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance so the environment is parsed once."""
    return Settings()


__all__ = ["Settings", "get_settings"]
