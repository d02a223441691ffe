import logging
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class AppSettings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    # Database
    db_path: str = Field("competition.db", description="SQLite database file.")

    # Competition
    competition_name: str = Field(
        "Bridge Building Competition", description="Shown in page headers."
    )

    # Export
    export_filename: str = Field(
        "bridge-building-competition-results.xlsx",
        description="Filename offered for the results workbook.",
    )
    export_sheet_name: str = Field(
        "Competition Results", description="Worksheet name inside the workbook."
    )
    google_sheet_key: Optional[str] = Field(
        None, description="Key of the Google Sheet that receives published results."
    )

    # Views
    live_refresh_seconds: int = Field(
        5, ge=1, description="How often the live team list polls for changes."
    )

    # Identity
    password_hash_iterations: int = Field(
        200_000, ge=1, description="PBKDF2 iterations for stored passwords."
    )

    # Logging Configuration
    log_level: str = Field(
        "INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )


def load_settings() -> AppSettings:
    """Loads and validates application settings."""
    try:
        settings = AppSettings()
    except Exception as e:
        logging.exception(f"Error loading application settings: {e}")
        raise SystemExit("Failed to load application settings. Exiting.")

    log_level_upper = settings.log_level.upper()
    if log_level_upper not in VALID_LOG_LEVELS:
        logging.warning(
            f"Invalid LOG_LEVEL '{settings.log_level}' found in .env or default. Using INFO."
        )
        settings.log_level = "INFO"
    else:
        settings.log_level = log_level_upper
    return settings


settings: AppSettings = load_settings()
