"""
Configuration management using pydantic-settings.
Loads configuration from environment variables and .env file.
"""

from functools import lru_cache
from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application Configuration
    APP_NAME: str = "Provider Document Fill Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_TO_FILE: bool = False
    LOG_DIR: str = "logs"

    # Output Configuration
    OUTPUT_DIR: str = "filled_documents"
    DEFAULT_FILE_NAME_PATTERN: str = "{documentName}_{provider.lastName}_{date}"
    ROSTER_FILE_NAME_PATTERN: str = "{documentName}_Roster_{date}"

    # Excel Configuration
    EXCEL_HEADER_ROW: int = 1
    EXCEL_DATA_START_ROW: int = 2
    EXCEL_DEFAULT_COLUMNS: int = 10  # Used when a sheet reports no columns
    EXCEL_MAX_COLUMNS: int = 200

    # PDF Configuration
    PDF_FLATTEN_DEFAULT: bool = False
    PDF_REQUIRED_KEYWORDS: str = "required,mandatory,must,*"

    @property
    def pdf_required_keywords_list(self) -> list[str]:
        """Get required-field name keywords as a list."""
        return [k.strip() for k in self.PDF_REQUIRED_KEYWORDS.split(",") if k.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure settings are loaded only once.
    """
    return Settings()


# Global settings instance
settings = get_settings()
