"""
Configuration — Pydantic v2 Settings (env / .env)
=================================================

Purpose
-------
Centralized, strongly-typed application configuration using:
- Pydantic v2 `BaseSettings` for environment-driven values
- `pydantic-settings` v2 for `.env` loading and model config

Load Order & Behavior
---------------------
- Values are read from the environment; if not present, `.env` is used.
- `extra="ignore"`: unknown env vars are ignored (not an error).
- Every field has a default so the service boots without a database. When the
  primary store credentials are absent, `primary_configured` is False and every
  request is served by the fallback store.

Usage
-----
from eggconomy.database.config.config import settings

if settings.primary_configured:
    url = settings.DATABASE_URL

Security
--------
- Never commit secrets or the `.env` file to source control.
- Override `SECRET_KEY` in every deployed environment.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application configuration settings loaded from environment variables
    or a `.env` file. Provides strongly typed access to environment values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Primary (hosted relational) store
    DATABASE_URL: Optional[str] = Field(None, description="Full SQLAlchemy URL; overrides the DB_* parts when set.")
    DB_DRIVER_NAME: str = Field("postgresql+asyncpg", description="Async SQLAlchemy driver (e.g., `postgresql+asyncpg`, `sqlite+aiosqlite`).")
    DB_USERNAME: Optional[str] = Field(None, description="Database username credential.")
    DB_PASSWORD: Optional[str] = Field(None, description="Database password credential.")
    DB_HOST: Optional[str] = Field(None, description="Hostname or IP address of the database server.")
    DB_PORT: Optional[int] = Field(None, description="Port of the database server.")
    DB_DATABASE_NAME: Optional[str] = Field(None, description="Name of the application’s database.")
    DB_CREATE_TABLES: bool = Field(False, description="Create missing tables on startup.")

    # Fallback (in-process) store
    FALLBACK_STORE_PATH: Optional[str] = Field(None, description="JSON document persisting the fallback store; in-memory only when unset.")
    FALLBACK_SEED_LISTINGS: bool = Field(False, description="Seed the fallback store with the demo listings.")

    # HTTP / auth
    FRONTEND_URL: str = Field("http://localhost:3000", description="Base URL of the frontend client application.")
    SECRET_KEY: str = Field("change-me", description="Secret key for signing session tokens.")
    ALGORITHM: str = Field("HS256", description="JWT signing algorithm.")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60 * 24, description="Duration (in minutes) before access tokens expire.")
    ADMIN_USERNAMES: List[str] = Field(default_factory=lambda: ["admin"], description="Names granted the admin role when their account is first created.")

    # Business rules
    LISTINGS_PER_HOUR: int = Field(5, description="Maximum listings a poster may create per hour.")
    MAX_FAILED_LOGINS: int = Field(5, description="Consecutive failed logins before the account is locked.")
    LOCKOUT_MINUTES: int = Field(15, description="Duration of an account lock.")
    VERIFICATION_EXPIRE_HOURS: int = Field(24, description="Lifetime of an email verification token.")

    LOG_LEVEL: str = Field("INFO", description="Root log level for the `eggconomy` loggers.")

    @property
    def primary_configured(self) -> bool:
        """True when enough connection details exist to reach the primary store."""
        if self.DATABASE_URL:
            return True
        return bool(self.DB_HOST and self.DB_DATABASE_NAME)


# Singleton instance of Settings, ready to be imported across the app
settings = Settings()
"""Defines a Settings object that contains the contents of the .env file"""
