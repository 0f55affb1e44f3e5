from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Expense Workflow"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "postgresql+asyncpg://expenses:expenses@db:5432/expenses"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    default_page_size: int = 10
    max_page_size: int = 100
    read_retry_attempts: int = 2

    # Role names as issued by the identity service.
    settlement_roles: list[str] = ["ACCOUNTANT", "ADMIN"]
    tax_roles: list[str] = ["TAX_ACCOUNTANT"]
    privileged_roles: list[str] = ["ADMIN", "CEO", "ACCOUNTANT"]


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
