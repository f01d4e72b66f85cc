"""Application configuration via environment variables."""

from pathlib import Path
from pydantic_settings import BaseSettings

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    database_url: str = "sqlite:///./admin.db"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:5173"]  # Vite dev server

    # Auth
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 1440  # 24 hours

    # Two-factor
    totp_issuer: str = "AramisTech"
    totp_valid_window: int = 1  # 30s steps accepted either side of now
    backup_code_count: int = 10

    model_config = {"env_prefix": "AT_", "env_file": ".env"}


settings = Settings()
