"""Configuration settings for Letovo Archive."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LETOVO_ARCHIVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///data.db"
    database_echo: bool = False

    # Blob storage: one directory per blob id under this root
    blob_root: str = "files"

    # ── Ingestion ────────────────────────────────────────────────────────────
    # Cumulative failures tolerated by a paginated source before the run aborts
    max_page_failures: int = 100

    # ── Source credentials ───────────────────────────────────────────────────
    # Contact e-mail sent in the HH.ru user agent; the hh source is skipped without it
    hh_email: str | None = None

    # Library catalog login; the library source is skipped without both
    lib_username: str | None = None
    lib_password: str | None = None

    # Import path ("module:attribute") of a factory returning the source producers
    producers: str | None = None

    # Logging
    log_level: str = "INFO"


settings = Settings()
