"""Application configuration from environment variables."""

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "SiteBook"
    debug: bool = True
    secret_key: str = "dev-secret-change-in-production"
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Database
    database_url: str = "postgresql+asyncpg://sitebook:sitebook@db:5432/sitebook"
    database_echo: bool = False

    # Auth (tokens are issued by the identity service, we only verify them)
    access_token_expire_minutes: int = 60
    jwt_algorithm: str = "HS256"

    # Scheduling
    schedule_shrink_policy: Literal["preserve", "reject", "cancel"] = "preserve"

    model_config = {"env_prefix": "SB_", "env_file": ".env", "extra": "ignore"}


settings = Settings()
