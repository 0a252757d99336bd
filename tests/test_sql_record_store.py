"""
Tests for the SQL record store, run against SQLite through aiosqlite.

Primary keys are UUIDs, so ids the store issues are real uuid4 strings.
Participant and listing references on conversations and messages are plain
strings and accept whatever id the serving store issued.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import String, event
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError
from sqlalchemy.ext.asyncio import create_async_engine

from eggconomy.database.config.connection_engine import metadata
from eggconomy.database.daos.sql_record_store import SqlRecordStore, translate_error
from eggconomy.database.entities import CONVERSATIONS, LISTINGS, MESSAGES, USERS, Conversation, Message
from eggconomy.database.errors import (
    ConstraintViolationError,
    ReferenceMissingError,
    RelationMissingError,
    StoreConnectionError,
    StoreError,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def user_record(name="Sarah", **extra):
    return {"name": name, "password": "$2b$12$hash", "createdAt": NOW, "lastLogin": NOW, **extra}


def listing_record(**extra):
    record = {
        "name": "Sarah from Berea",
        "quantity": 12,
        "exchangeType": "cash",
        "location": "Berea, KY",
        "paymentHandles": {"venmo": "@sarah_b"},
        "datePosted": NOW,
    }
    record.update(extra)
    return record


@pytest_asyncio.fixture
async def strict_sql_store(tmp_path):
    """SQLite store with foreign key enforcement switched on."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'strict.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield SqlRecordStore(engine)
    await engine.dispose()


class TestSqlRecordStoreShapes:
    """Records enter and leave in the application shape."""

    @pytest.mark.asyncio
    async def test_insert_returns_application_shape(self, sql_store):
        created = await sql_store.insert(USERS, user_record())

        uuid.UUID(created["id"])
        assert created["name"] == "Sarah"
        assert created["createdAt"] == NOW
        assert created["failedLoginAttempts"] == 0
        assert created["emailVerified"] is False
        assert "created_at" not in created

    @pytest.mark.asyncio
    async def test_datetimes_come_back_utc_aware(self, sql_store):
        await sql_store.insert(USERS, user_record())

        found = await sql_store.find_one(USERS, {"name": "Sarah"})

        assert found["lastLogin"].tzinfo is not None
        assert found["lastLogin"] == NOW

    @pytest.mark.asyncio
    async def test_nested_payment_handles_round_trip(self, sql_store):
        created = await sql_store.insert(LISTINGS, listing_record())

        found = await sql_store.find_one(LISTINGS, {"id": created["id"]})

        assert found["paymentHandles"] == {"venmo": "@sarah_b"}
        assert found["exchangeType"] == "cash"

    @pytest.mark.asyncio
    async def test_find_filters_on_camel_fields(self, sql_store):
        await sql_store.insert(LISTINGS, listing_record(exchangeType="gift"))
        await sql_store.insert(LISTINGS, listing_record(exchangeType="cash"))

        found = await sql_store.find(LISTINGS, {"exchangeType": "gift"})

        assert [record["exchangeType"] for record in found] == ["gift"]

    @pytest.mark.asyncio
    async def test_unknown_filter_field_is_an_error(self, sql_store):
        """An unknown filter must never silently match every row."""
        await sql_store.insert(LISTINGS, listing_record())

        with pytest.raises(StoreError):
            await sql_store.find(LISTINGS, {"colour": "brown"})

    @pytest.mark.asyncio
    async def test_update_applies_patch(self, sql_store):
        await sql_store.insert(USERS, user_record())
        locked = NOW + timedelta(minutes=15)

        updated = await sql_store.update(USERS, {"name": "Sarah"}, {"failedLoginAttempts": 5, "lockedUntil": locked})

        assert updated[0]["failedLoginAttempts"] == 5
        found = await sql_store.find_one(USERS, {"name": "Sarah"})
        assert found["lockedUntil"] == locked


class TestSqlRecordStoreReferences:
    """Participant ids are stored as given; only the conversation link is enforced."""

    @pytest.mark.parametrize(
        "model, column",
        [
            (Conversation, "listing_id"),
            (Conversation, "buyer_id"),
            (Conversation, "seller_id"),
            (Message, "sender_id"),
        ],
    )
    def test_reference_columns_are_plain_strings(self, model, column):
        column = model.__table__.c[column]

        assert isinstance(column.type, String)
        assert not column.foreign_keys

    @pytest.mark.asyncio
    async def test_conversation_between_named_participants(self, sql_store):
        record = {
            "listingId": "1",
            "buyerId": "Sarah",
            "sellerId": "Mike's Farm",
            "status": "active",
            "createdAt": NOW,
            "updatedAt": NOW,
        }

        created = await sql_store.insert(CONVERSATIONS, record)
        message = await sql_store.insert(
            MESSAGES,
            {"conversationId": created["id"], "senderId": "Sarah", "content": "Hi", "createdAt": NOW},
        )

        found = await sql_store.find(CONVERSATIONS, {"buyerId": "Sarah"})
        assert [conversation["listingId"] for conversation in found] == ["1"]
        assert message["senderId"] == "Sarah"

    @pytest.mark.asyncio
    async def test_message_for_unknown_conversation(self, strict_sql_store):
        record = {"conversationId": str(uuid.uuid4()), "senderId": "Sarah", "content": "Hi", "createdAt": NOW}

        with pytest.raises(ReferenceMissingError) as exc_info:
            await strict_sql_store.insert(MESSAGES, record)

        assert not isinstance(exc_info.value, ConstraintViolationError)
        assert exc_info.value.entity == MESSAGES
        assert await strict_sql_store.find(MESSAGES) == []


class TestSqlRecordStoreConstraints:
    """Uniqueness constraints surface as ConstraintViolationError."""

    @pytest.mark.asyncio
    async def test_duplicate_name(self, sql_store):
        await sql_store.insert(USERS, user_record())

        with pytest.raises(ConstraintViolationError) as exc_info:
            await sql_store.insert(USERS, user_record())

        assert exc_info.value.reason == "Name is already taken"

    @pytest.mark.asyncio
    async def test_duplicate_email(self, sql_store):
        await sql_store.insert(USERS, user_record("Sarah", email="eggs@example.com"))

        with pytest.raises(ConstraintViolationError) as exc_info:
            await sql_store.insert(USERS, user_record("Mike", email="eggs@example.com"))

        assert exc_info.value.reason == "Email is already registered"

    @pytest.mark.asyncio
    async def test_quantity_must_be_positive(self, sql_store):
        """A CHECK failure is not a duplicate."""
        with pytest.raises(StoreError) as exc_info:
            await sql_store.insert(LISTINGS, listing_record(quantity=0))

        assert not isinstance(exc_info.value, (ConstraintViolationError, ReferenceMissingError))

    @pytest.mark.asyncio
    async def test_failed_insert_leaves_nothing_behind(self, sql_store):
        await sql_store.insert(USERS, user_record())
        with pytest.raises(ConstraintViolationError):
            await sql_store.insert(USERS, user_record())

        assert len(await sql_store.find(USERS)) == 1

    @pytest.mark.asyncio
    async def test_find_or_insert_is_idempotent(self, sql_store):
        where = {"listingId": str(uuid.uuid4()), "buyerId": str(uuid.uuid4()), "sellerId": str(uuid.uuid4())}
        record = {**where, "status": "active", "createdAt": NOW, "updatedAt": NOW}

        first, created_first = await sql_store.find_or_insert(CONVERSATIONS, where, record)
        second, created_second = await sql_store.find_or_insert(CONVERSATIONS, where, record)

        assert created_first is True
        assert created_second is False
        assert first["id"] == second["id"]


class TestSqlRecordStoreMissingRelation:
    """A database without the tables reports RelationMissingError."""

    @pytest.mark.asyncio
    async def test_find_on_missing_table(self, empty_engine):
        store = SqlRecordStore(empty_engine)

        with pytest.raises(RelationMissingError) as exc_info:
            await store.find(LISTINGS)

        assert exc_info.value.entity == LISTINGS

    @pytest.mark.asyncio
    async def test_insert_on_missing_table(self, empty_engine):
        store = SqlRecordStore(empty_engine)

        with pytest.raises(RelationMissingError):
            await store.insert(USERS, user_record())


class _PgError(Exception):
    """Stand-in for an asyncpg error carrying a SQLSTATE."""

    def __init__(self, message, sqlstate):
        super().__init__(message)
        self.sqlstate = sqlstate


class TestTranslateError:
    """Tests for driver-error classification."""

    def test_undefined_table_sqlstate(self):
        exc = ProgrammingError("SELECT * FROM listings", {}, _PgError('relation "listings" does not exist', "42P01"))

        error = translate_error(exc, LISTINGS)

        assert isinstance(error, RelationMissingError)
        assert error.entity == LISTINGS

    def test_integrity_error(self):
        exc = IntegrityError("INSERT", {}, Exception('duplicate key value violates unique constraint "users_name_key"'))

        error = translate_error(exc, USERS)

        assert isinstance(error, ConstraintViolationError)
        assert error.reason == "Name is already taken"

    def test_undefined_column_is_not_a_missing_relation(self):
        exc = ProgrammingError(
            "SELECT locked_until FROM users",
            {},
            _PgError('column "locked_until" of relation "users" does not exist', "42703"),
        )

        error = translate_error(exc, USERS)

        assert isinstance(error, StoreError)
        assert not isinstance(error, RelationMissingError)

    def test_sqlstate_wins_over_message_text(self):
        exc = ProgrammingError("SELECT", {}, _PgError('relation "users" does not exist', "42501"))

        assert not isinstance(translate_error(exc, USERS), RelationMissingError)

    def test_sqlite_missing_table(self):
        exc = OperationalError("SELECT * FROM listings", {}, Exception("no such table: listings"))

        assert isinstance(translate_error(exc, LISTINGS), RelationMissingError)

    def test_sqlite_missing_column(self):
        exc = OperationalError("SELECT", {}, Exception("no such column: locked_until"))

        assert not isinstance(translate_error(exc, USERS), RelationMissingError)

    def test_column_text_without_sqlstate(self):
        exc = ProgrammingError("SELECT", {}, Exception('column "locked_until" of relation "users" does not exist'))

        assert not isinstance(translate_error(exc, USERS), RelationMissingError)

    def test_foreign_key_sqlstate(self):
        exc = IntegrityError(
            "INSERT INTO messages",
            {},
            _PgError('insert or update on table "messages" violates foreign key constraint', "23503"),
        )

        error = translate_error(exc, MESSAGES)

        assert isinstance(error, ReferenceMissingError)
        assert not isinstance(error, ConstraintViolationError)

    def test_sqlite_foreign_key(self):
        exc = IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed"))

        assert isinstance(translate_error(exc, MESSAGES), ReferenceMissingError)

    def test_unique_sqlstate_uses_constraint_name(self):
        exc = IntegrityError("INSERT", {}, _PgError("duplicate key value violates unique constraint", "23505"))
        exc.orig.constraint_name = "users_email_key"

        error = translate_error(exc, USERS)

        assert isinstance(error, ConstraintViolationError)
        assert error.reason == "Email is already registered"

    def test_unique_reason_ignores_column_names_in_values(self):
        """A value that happens to contain 'email' must not pick the email reason."""
        exc = IntegrityError(
            "INSERT",
            {},
            Exception('duplicate key value violates unique constraint "users_name_key" (name)=(email)'),
        )

        assert translate_error(exc, USERS).reason == "Name is already taken"

    def test_other_integrity_failure_is_not_a_conflict(self):
        exc = IntegrityError("INSERT", {}, _PgError("null value in column violates not-null constraint", "23502"))

        error = translate_error(exc, LISTINGS)

        assert isinstance(error, StoreError)
        assert not isinstance(error, (ConstraintViolationError, ReferenceMissingError))

    def test_connection_refused(self):
        exc = OperationalError("SELECT 1", {}, Exception("connection refused"))

        assert isinstance(translate_error(exc, USERS), StoreConnectionError)

    def test_socket_error(self):
        assert isinstance(translate_error(ConnectionRefusedError("refused"), USERS), StoreConnectionError)

    def test_store_errors_are_returned_untouched(self):
        original = RelationMissingError("gone", USERS)

        assert translate_error(original, USERS) is original
