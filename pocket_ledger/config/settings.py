"""
Configuration Management for Pocket Ledger

Settings come from environment variables (and .env) through pydantic-settings.

All configuration is centralized here. External services (Cloudinary,
Google Sheets) get their own section so that a missing credential only
breaks the component that needs it.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CloudinarySettings(BaseSettings):
    """Cloudinary upload service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_",
        extra="ignore"
    )

    cloud_name: str = Field(
        ...,
        description="Cloudinary cloud name"
    )
    api_key: str = Field(
        ...,
        description="Cloudinary API key"
    )
    api_secret: str = Field(
        ...,
        description="Cloudinary API secret"
    )
    root_folder: str = Field(
        default="pocket_ledger",
        description="Top-level folder that wallets/, users/ and transactions/ live under"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets document store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # One worksheet per collection
    wallets_sheet_name: str = Field(
        default="Wallets",
        description="Name of the sheet for wallets"
    )
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for transactions"
    )
    users_sheet_name: str = Field(
        default="Users",
        description="Name of the sheet for user profiles"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Only warn: the key file may be mounted after settings load."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Sheets storage will fail to connect until it exists."
            )
        return v


class AppSettings(BaseSettings):
    """
    Ledger-wide settings read from the environment and .env.

    Every field has a default so the ledger runs without any .env present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Deployment name, e.g. development or production"
    )
    debug_mode: bool = Field(
        default=False,
        description="Log at DEBUG regardless of log_level"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum log level for the stdlib root logger"
    )
    log_json: bool = Field(
        default=True,
        description="Render log lines as JSON (console renderer otherwise)"
    )

    # Uploads
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Largest image accepted for upload, in MB"
    )
    supported_image_formats: str = Field(
        default="jpg,jpeg,png,webp",
        description="Comma-separated image extensions accepted for upload"
    )

    # Ledger behaviour
    delete_batch_size: int = Field(
        default=500,
        ge=1,
        le=500,
        description="Transactions removed per batch when a wallet is deleted"
    )
    recent_transactions_limit: int = Field(
        default=30,
        ge=1,
        le=500,
        description="How many transactions the home screen lists"
    )

    @property
    def supported_formats_list(self) -> list[str]:
        """Allowed extensions, lower-case."""
        return [fmt.strip().lower() for fmt in self.supported_image_formats.split(",")]

    @property
    def max_upload_size_bytes(self) -> int:
        """Upload limit in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """Entry point to every settings section."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sections are loaded lazily to allow partial configuration

    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Shared Settings instance.

    Tests call get_settings.cache_clear() after changing the environment.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Try loading each section.

    Returns a dict of {setting_name: is_valid}, plus an
    ``<name>_error`` entry for every section that failed to load.
    """
    results = {}
    settings = get_settings()

    for name in ("cloudinary", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
