from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "share-link-service"
    app_env: str = "dev"
    log_level: str = "INFO"
    database_path: str = "data/share.db"
    public_base_url: str | None = None
    max_upload_size_bytes: int = 50 * 1024 * 1024
    token_bytes: int = Field(default=16, ge=16)
    default_expiry_days: int = 7
    max_expiry_days: int = 365

    model_config = SettingsConfigDict(env_file=".env", env_prefix="SLS_")


@lru_cache
def get_settings() -> Settings:
    return Settings()
