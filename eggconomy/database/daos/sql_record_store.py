"""
SQL Record Store

Purpose
-------
Record store backed by the hosted relational database. Provides entity-scoped
`find`, `insert`, `update` and `find_or_insert` over the ORM entities.

Design
------
- Each public method runs in its own transaction (`@transactional`); the
  store never holds a transaction open across calls.
- Records enter and leave in the application shape. The Shape Normalizer is
  applied here, at the boundary, and nowhere else.
- Driver exceptions are translated into the store error taxonomy
  (`eggconomy.database.errors`) so callers can tell a missing table from a
  constraint violation from an outage.
- Uniqueness is enforced by the database constraints; `unique_on` is
  accepted for interface parity and otherwise ignored.

Usage
-----
.. code-block:: python

    from eggconomy.database.config.connection_engine import create_connection_engine
    from eggconomy.database.daos.sql_record_store import SqlRecordStore

    store = SqlRecordStore(create_connection_engine())
    listing = await store.insert("listings", {"name": "Sarah", "quantity": 12, ...})
    rows = await store.find("listings", {"name": "Sarah"})

Error Handling
--------------
- Every failure is logged as ``Error in SqlRecordStore.<method>`` and
  re-raised as a `StoreError` subclass.
- Classification trusts the SQLSTATE whenever the driver reports one:
  42P01 is a missing relation, 23505 a duplicate, 23503 a dangling
  reference. Message text is only read for drivers without SQLSTATEs
  (SQLite). Other integrity failures and undefined columns stay plain
  `StoreError`s.
"""

import asyncio
import logging
import re
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from eggconomy.database.daos.record_store import Record, RecordStore
from eggconomy.database.entities import ENTITY_MODELS
from eggconomy.database.errors import (
    ConstraintViolationError,
    ReferenceMissingError,
    RelationMissingError,
    StoreConnectionError,
    StoreError,
)
from eggconomy.database.helpers.transactionManagement import transactional
from eggconomy.database.normalizer import to_application_shape, to_storage_shape

logger = logging.getLogger(__name__)

UNDEFINED_TABLE = "42P01"
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"

# only consulted when the driver gives no SQLSTATE (SQLite)
_RELATION_MISSING_PATTERN = re.compile(r'no such table: \S+|(?<!of )relation "[^"]+" does not exist')

# constraint name (PostgreSQL) or "table.column" (SQLite) -> user facing reason
_UNIQUE_REASONS = (
    (("users_email_key", "users.email"), "Email is already registered"),
    (("users_name_key", "users.name"), "Name is already taken"),
    (("uq_conversations_participants", "conversations.listing_id"), "Conversation already exists"),
)


def _driver_errors(exc: BaseException) -> list:
    orig = getattr(exc, "orig", None)
    if orig is None:
        return []
    return [orig, getattr(orig, "__cause__", None)]


def _sqlstate(exc: BaseException) -> Optional[str]:
    """Extract the SQLSTATE from a wrapped DBAPI error, if the driver exposes one."""
    for candidate in _driver_errors(exc):
        for attr in ("sqlstate", "pgcode"):
            code = getattr(candidate, attr, None)
            if isinstance(code, str) and code:
                return code
    return None


def _message(exc: BaseException) -> str:
    return str(getattr(exc, "orig", exc)).strip().lower()


def _is_relation_missing(exc: BaseException) -> bool:
    code = _sqlstate(exc)
    if code is not None:
        return code == UNDEFINED_TABLE
    return bool(_RELATION_MISSING_PATTERN.search(_message(exc)))


def _is_foreign_key_violation(exc: BaseException) -> bool:
    code = _sqlstate(exc)
    if code is not None:
        return code == FOREIGN_KEY_VIOLATION
    return "foreign key constraint" in _message(exc)


def _is_unique_violation(exc: BaseException) -> bool:
    code = _sqlstate(exc)
    if code is not None:
        return code == UNIQUE_VIOLATION
    return "unique constraint" in _message(exc)


def _constraint_reason(exc: BaseException) -> str:
    names = [
        getattr(candidate, "constraint_name", None) for candidate in _driver_errors(exc)
    ]
    text = " ".join(name for name in names if isinstance(name, str)) or _message(exc)
    for markers, reason in _UNIQUE_REASONS:
        if any(marker in text for marker in markers):
            return reason
    return "Record conflicts with an existing one"


def translate_error(exc: BaseException, entity: Optional[str]) -> StoreError:
    """Map a driver/SQLAlchemy exception onto the store error taxonomy."""
    if isinstance(exc, StoreError):
        return exc
    if isinstance(exc, IntegrityError):
        if _is_foreign_key_violation(exc):
            return ReferenceMissingError(str(exc.orig), entity)
        if _is_unique_violation(exc):
            return ConstraintViolationError(str(exc.orig), entity, _constraint_reason(exc))
        return StoreError(str(exc.orig), entity)
    if isinstance(exc, DBAPIError) and _is_relation_missing(exc):
        return RelationMissingError(str(exc.orig), entity)
    if isinstance(exc, (OperationalError, InterfaceError, DisconnectionError)):
        return StoreConnectionError(str(exc), entity)
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return StoreConnectionError(str(exc), entity)
    if isinstance(exc, (OSError, asyncio.TimeoutError)):
        return StoreConnectionError(str(exc), entity)
    return StoreError(str(exc), entity)


def store_errors(func):
    """Log and translate any failure of a store method (including its commit)."""
    @wraps(func)
    async def wrap_func(self, entity, *args, **kwargs):
        try:
            return await func(self, entity, *args, **kwargs)
        except StoreError:
            raise
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            error = translate_error(e, entity)
            logger.error(
                f"Error in SqlRecordStore.{func.__name__}({entity}). "
                f"Error Message: {error.message}"
            )
            raise error from e

    return wrap_func


def _as_utc(value: Any) -> Any:
    # SQLite drops tzinfo on round trip; every stored instant is UTC.
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlRecordStore(RecordStore):
    """
    Record store over the primary relational database.

    Parameters
    ----------
    engine : AsyncEngine
        Engine created by `create_connection_engine` (or a test engine).
    """

    name = "primary"
    supports_account_security = True

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    @staticmethod
    def _model(entity: str):
        try:
            return ENTITY_MODELS[entity]
        except KeyError:
            raise StoreError(f"Unknown entity '{entity}'", entity)

    @staticmethod
    def _to_record(entity: str, obj) -> Record:
        row = {column.key: _as_utc(getattr(obj, column.key)) for column in obj.__table__.columns}
        return to_application_shape(entity, row)

    def _to_columns(self, entity: str, record: Record) -> Dict[str, Any]:
        columns = self._model(entity).__table__.columns.keys()
        storage = to_storage_shape(entity, record)
        return {key: value for key, value in storage.items() if key in columns}

    def _to_filter(self, entity: str, where: Optional[Record]) -> Dict[str, Any]:
        columns = self._model(entity).__table__.columns.keys()
        storage = to_storage_shape(entity, where or {})
        unknown = [key for key in storage if key not in columns]
        if unknown:
            raise StoreError(f"Cannot filter {entity} on {', '.join(unknown)}", entity)
        return storage

    @store_errors
    @transactional
    async def find(self, entity: str, where: Optional[Record] = None, session: AsyncSession = None) -> List[Record]:
        model = self._model(entity)
        query = select(model).filter_by(**self._to_filter(entity, where))
        result = await session.execute(query)
        return [self._to_record(entity, obj) for obj in result.scalars().all()]

    @store_errors
    @transactional
    async def insert(
        self,
        entity: str,
        record: Record,
        unique_on: Sequence[str] = (),
        session: AsyncSession = None,
    ) -> Record:
        model = self._model(entity)
        obj = model(**self._to_columns(entity, record))
        session.add(obj)
        await session.flush()
        return self._to_record(entity, obj)

    @store_errors
    @transactional
    async def update(self, entity: str, where: Record, patch: Record, session: AsyncSession = None) -> List[Record]:
        model = self._model(entity)
        query = select(model).filter_by(**self._to_filter(entity, where))
        result = await session.execute(query)
        objs = result.scalars().all()
        changes = self._to_columns(entity, patch)
        for obj in objs:
            for key, value in changes.items():
                setattr(obj, key, value)
        await session.flush()
        return [self._to_record(entity, obj) for obj in objs]

    @store_errors
    async def find_or_insert(self, entity: str, where: Record, record: Record) -> Tuple[Record, bool]:
        existing = await self.find_one(entity, where)
        if existing is not None:
            return existing, False
        try:
            return await self.insert(entity, record), True
        except ConstraintViolationError:
            # Lost a race against a concurrent insert of the same row.
            existing = await self.find_one(entity, where)
            if existing is None:
                raise
            return existing, False
