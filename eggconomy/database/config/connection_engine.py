"""
Connection Engine (SQLAlchemy asyncio)

Purpose
-------
Centralizes database initialization for the primary store:
- Builds the SQLAlchemy connection URL from environment-backed settings.
- Creates the async Engine (connection pool + SQL execution entry point).
- Defines shared MetaData for table and schema objects.
- Exposes a Declarative Base class for ORM models.

Notes
-----
- Uses `URL.create(...)` to avoid hardcoding credentials.
- Returns no engine when the primary store is unconfigured; callers route
  everything to the fallback store in that case.
- All ORM models must inherit from `declarativeBase`.
"""

from typing import Optional

from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.schema import MetaData

from eggconomy.database.config.config import Settings, settings


def build_connection_url(config: Settings = settings) -> Optional[URL]:
    """
    Construct the SQLAlchemy connection URL using values from Settings.

    Returns
    -------
    URL | None
        The URL, or None when the primary store is not configured.
    """
    if not config.primary_configured:
        return None
    if config.DATABASE_URL:
        return make_url(config.DATABASE_URL)
    return URL.create(
        drivername=config.DB_DRIVER_NAME,
        username=config.DB_USERNAME,
        password=config.DB_PASSWORD,
        host=config.DB_HOST,
        port=config.DB_PORT,
        database=config.DB_DATABASE_NAME,
    )


def create_connection_engine(config: Settings = settings) -> Optional[AsyncEngine]:
    """
    Create the async Engine for the primary store.

    No connection is opened here; the pool connects lazily on first use.
    """
    url = build_connection_url(config)
    if url is None:
        return None
    return create_async_engine(url, pool_pre_ping=True)


# --------------------------------------------------------------------
# Metadata object: stores schema-level information about tables,
# constraints, indexes, etc. Shared across all models.
# --------------------------------------------------------------------
metadata = MetaData()
"""
Metadata object: Stores schema-level information about tables, constraints, indexes, etc. Shared across all models.
"""

declarativeBase = declarative_base(metadata=metadata)
"""Declarative Base: Root class for ORM models."""
