"""Application configuration."""
from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import ConfigDict


class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")
    app_env: str = "development"
    secret_key: str = "dev-secret-change-in-production"
    debug: bool = True
    public_base_url: str | None = None

    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "botmaker"
    postgres_user: str = "botmaker"
    postgres_password: str = "changeme"

    redis_host: str = "localhost"
    redis_port: int = 6379

    maker_bot_token: str = ""
    owner_id: str = ""  # Telegram user id of the platform owner
    default_channel_url: str = "https://t.me/Kali_Linux_BOTS"

    telegram_timeout_seconds: float = 20.0
    telegram_webhook_timeout_seconds: float = 10.0

    broadcast_pause_ms: int = 34  # ~30 msg/s per bot
    broadcast_tenant_pause_seconds: float = 1.0
    broadcast_lock_ttl_seconds: int = 3600
    broadcast_job_timeout_seconds: int = 6 * 3600
    rq_broadcast_queue_name: str = "broadcast"


@lru_cache
def get_settings() -> Settings:
    return Settings()
