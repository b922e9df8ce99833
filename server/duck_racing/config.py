"""Application configuration using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Database
    database_url: str = "postgresql+asyncpg://localhost/duck_racing"

    # Discord
    discord_bot_token: str = ""
    discord_public_key: str | None = None
    discord_application_id: str = ""
    discord_guild_id: str = ""
    discord_commander_role_id: str = ""  # "Quack Commander" role

    # HTTP API
    api_token: str
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]
    rate_limit: str = "60/minute"
    trust_proxy_headers: bool = True  # honour X-Forwarded-For (set by nginx)

    # Race coordination
    claim_queue_timeout: float = 2.0  # seconds a request may wait for its channel
    store_timeout: float = 10.0  # seconds before a store transaction is abandoned
    wipe_confirmation_ttl: float = 60.0
    retired_holder_ids: list[str] = []

    # Server
    log_level: str = "INFO"


settings = Settings()  # type: ignore[call-arg]  # populated from env vars / .env file
