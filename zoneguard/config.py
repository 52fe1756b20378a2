"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. The .env file is gitignored; .env.example provides a safe template.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Only the startup wiring in main.py reads `settings`. The service, token issuer
and repository receive their configuration explicitly when they are built.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for ZoneGuard.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Used to sign bearer tokens
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "ZoneGuard"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # "production" switches logs to JSON
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/zoneguard.db"

    # --- Authentication ---
    # REQUIRED: No default, forces the operator to set a real secret
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    # Also the staleness window for role changes and deletions: tokens are
    # not revalidated against the store.
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # --- Bootstrap ---
    # Initial admin created on startup when the user store is empty
    BOOTSTRAP_ADMIN_USERNAME: str | None = None
    BOOTSTRAP_ADMIN_PASSWORD: str | None = None

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]


# Singleton: import this instance in startup wiring instead of creating new Settings()
settings = Settings()
