"""Configuration management for Directory Service."""

from functools import lru_cache
from typing import Dict, Optional

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.domain.entities import EntityKind


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service Configuration
    SERVICE_HOST: str = "0.0.0.0"
    SERVICE_PORT: int = 8080

    # TLS (served directly by uvicorn when both are set)
    SSL_CERTFILE: Optional[str] = None
    SSL_KEYFILE: Optional[str] = None

    # Notion Configuration
    INTEGRATION_SECRET: str
    MEMBER_DATABASE_ID: str
    GROUP_DATABASE_ID: str
    CLUB_DATABASE_ID: str
    EVENT_DATABASE_ID: str
    ARTICLE_DATABASE_ID: str
    SPONSOR_DATABASE_ID: str

    NOTION_API_URL: str = "https://api.notion.com/v1"
    NOTION_VERSION: str = "2022-06-28"
    NOTION_TIMEOUT_SECONDS: float = 10.0
    NOTION_PAGE_SIZE: int = 100
    NOTION_RATE_LIMIT_REQUESTS: int = 3
    NOTION_RATE_LIMIT_WINDOW: int = 1

    # Refresh Configuration
    REFRESH_INTERVAL_SECONDS: int = 24 * 60 * 60
    REFRESH_STEP_DELAY_MS: int = 500
    FETCH_ARTICLE_CONTENT: bool = True

    LOG_LEVEL: str = "INFO"

    @field_validator(
        "INTEGRATION_SECRET",
        "MEMBER_DATABASE_ID",
        "GROUP_DATABASE_ID",
        "CLUB_DATABASE_ID",
        "EVENT_DATABASE_ID",
        "ARTICLE_DATABASE_ID",
        "SPONSOR_DATABASE_ID",
    )
    @classmethod
    def validate_required(cls, v: str, info: ValidationInfo) -> str:
        """Reject blank credentials and database ids."""
        if not v or v.strip() == "":
            raise ValueError(f"{info.field_name} is not set")
        return v.strip()

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def database_ids(self) -> Dict[EntityKind, str]:
        """Notion database id for every entity kind."""
        return {
            EntityKind.MEMBER: self.MEMBER_DATABASE_ID,
            EntityKind.GROUP: self.GROUP_DATABASE_ID,
            EntityKind.CLUB: self.CLUB_DATABASE_ID,
            EntityKind.EVENT: self.EVENT_DATABASE_ID,
            EntityKind.ARTICLE: self.ARTICLE_DATABASE_ID,
            EntityKind.SPONSOR: self.SPONSOR_DATABASE_ID,
        }

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Load settings once; raises ``ValidationError`` when required values are missing."""
    return Settings()
