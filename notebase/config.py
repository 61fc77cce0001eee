"""
Configuration module for notebase.

Uses pydantic-settings for configuration management with environment variable support.
Environment variables use NOTEBASE_ prefix (e.g., NOTEBASE_DATA_PATH).
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_default_data_path() -> Path:
    """Get default location of the SQLite database file."""
    return Path.home() / ".notebase" / "notebase.db"


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Environment variables:
    - NOTEBASE_DATA_PATH: Path to the SQLite database file
    - NOTEBASE_SAVE_DEBOUNCE_SECONDS: Quiet period before an edit is persisted
    - NOTEBASE_MAX_CONTENT_SIZE: Maximum note content size in bytes
    - NOTEBASE_MAX_FOLDER_NAME_LENGTH: Maximum folder name length
    - NOTEBASE_RECENT_NOTES_LIMIT: Number of notes in the recent list
    - NOTEBASE_DEFAULT_FOLDER_NAME: Name of the folder created in an empty store
    - NOTEBASE_LOG_LEVEL: Minimum log level (DEBUG, INFO, WARNING, ...)
    - NOTEBASE_LOG_JSON: Emit JSON log lines instead of console output
    """

    data_path: Path = Field(default_factory=_get_default_data_path)
    save_debounce_seconds: float = 1.0
    max_content_size: int = 1 * 1024 * 1024  # 1MB in bytes
    max_folder_name_length: int = 200
    recent_notes_limit: int = 50
    default_folder_name: str = "Default notebook"
    log_level: str = "INFO"
    log_json: bool = False

    model_config = SettingsConfigDict(env_prefix="NOTEBASE_")


# Global settings instance
settings = Settings()
