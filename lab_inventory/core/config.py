from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Iterable, Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Lab Inventory"
    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parent.parent.parent / "data")
    TZ: str = "Europe/Istanbul"
    LOG_LEVEL: str = "INFO"

    STORAGE_BACKEND: Literal["sql", "json"] = "sql"
    DB_URL: str = Field(default="", validation_alias=AliasChoices("DATABASE_URL", "DB_URL"))

    APP_SECRET: str = "dev-insecure-secret-change-me"
    SESSION_COOKIE_NAME: str = "lab_session"
    SESSION_MAX_AGE: int = 60 * 60 * 12

    ADMIN_DEFAULT_PASSWORD: str = "admin123"
    ADMIN_RECOVERY_ANSWER: str = "laboratuvar"

    CALIBRATION_DUE_SOON_DAYS: int = 30

    GEMINI_API_KEY: str = Field(default="", validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY"))
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_API_URL: str = "https://generativelanguage.googleapis.com/v1beta/models"
    GEMINI_TIMEOUT: float = 60.0

    ALLOWED_ORIGINS: Annotated[list[str], NoDecode] = Field(default_factory=list)

    @property
    def database_url(self) -> str:
        return self.DB_URL or f"sqlite:///{self.DATA_DIR / 'lab_inventory.db'}"

    @property
    def analyzer_configured(self) -> bool:
        return bool(self.GEMINI_API_KEY.strip())

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, value: Any) -> list[str]:
        if value in (None, "", []):
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, Iterable):
            return [str(item).strip() for item in value if str(item).strip()]
        raise TypeError("ALLOWED_ORIGINS must be a comma separated string or list")


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    return settings
