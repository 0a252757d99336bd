"""
Tests for the degradation policy: which store serves each request and how
store errors surface.
"""

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from eggconomy.database.config.config import Settings
from eggconomy.database.core.policy import (
    DegradationPolicy,
    build_policy,
    demo_listings,
    get_policy,
    reset_policy,
)
from eggconomy.database.daos.record_store import RecordStore
from eggconomy.database.daos.sql_record_store import SqlRecordStore
from eggconomy.database.errors import (
    ConstraintViolationError,
    ReferenceMissingError,
    RelationMissingError,
    StoreConnectionError,
)
from eggconomy.errors import ConflictError, NotFound, ServiceFailure


def fake_primary():
    primary = MagicMock(spec=RecordStore)
    primary.name = "primary"
    return primary


class RecordingOp:
    """Logical operation that records which stores it ran against."""

    def __init__(self, primary_error=None, result="ok"):
        self.primary_error = primary_error
        self.result = result
        self.stores = []

    async def __call__(self, store):
        self.stores.append(store.name)
        if store.name == "primary" and self.primary_error is not None:
            raise self.primary_error
        return self.result


class TestStoreSelection:
    """Tests for primary / fallback routing."""

    @pytest.mark.asyncio
    async def test_unconfigured_primary_uses_fallback(self, fallback):
        policy = DegradationPolicy(None, fallback)
        op = RecordingOp()

        assert await policy.run("fetch listings", op) == "ok"
        assert op.stores == ["fallback"]
        assert policy.primary_configured is False

    @pytest.mark.asyncio
    async def test_configured_primary_is_tried_first(self, fallback):
        policy = DegradationPolicy(fake_primary(), fallback)
        op = RecordingOp()

        await policy.run("fetch listings", op)

        assert op.stores == ["primary"]

    @pytest.mark.asyncio
    async def test_missing_relation_falls_back_once(self, fallback):
        policy = DegradationPolicy(fake_primary(), fallback)
        op = RecordingOp(primary_error=RelationMissingError("no such table: listings", "listings"))

        assert await policy.run("fetch listings", op) == "ok"
        assert op.stores == ["primary", "fallback"]

    @pytest.mark.asyncio
    async def test_fallback_is_not_sticky(self, fallback):
        """Each request tries the primary again."""
        policy = DegradationPolicy(fake_primary(), fallback)
        op = RecordingOp(primary_error=RelationMissingError("no such table", "listings"))

        await policy.run("fetch listings", op)
        op.primary_error = None
        await policy.run("fetch listings", op)

        assert op.stores == ["primary", "fallback", "primary"]

    @pytest.mark.asyncio
    async def test_lock_is_shared_per_key(self, fallback):
        policy = DegradationPolicy(None, fallback)

        assert policy.lock("listings:Sarah") is policy.lock("listings:Sarah")
        assert policy.lock("listings:Sarah") is not policy.lock("listings:Mike")
        assert isinstance(policy.lock("listings:Sarah"), asyncio.Lock)

    @pytest.mark.asyncio
    async def test_real_unmigrated_primary_falls_back(self, unmigrated_policy):
        await unmigrated_policy.run("create listing", lambda store: store.insert("listings", {"name": "Sarah"}))

        listings = await unmigrated_policy.fallback.find("listings")
        assert [listing["name"] for listing in listings] == ["Sarah"]


class TestErrorSurfacing:
    """Non-relation errors never trigger the fallback."""

    @pytest.mark.asyncio
    async def test_constraint_violation_is_a_conflict(self, fallback):
        policy = DegradationPolicy(fake_primary(), fallback)
        op = RecordingOp(primary_error=ConstraintViolationError("dup", "users", "Name is already taken"))

        with pytest.raises(ConflictError) as exc_info:
            await policy.run("authenticate user", op)

        assert exc_info.value.detail == "Name is already taken"
        assert exc_info.value.status_code == 409
        assert op.stores == ["primary"]

    @pytest.mark.asyncio
    async def test_dangling_reference_is_not_found(self, fallback):
        policy = DegradationPolicy(fake_primary(), fallback)
        op = RecordingOp(
            primary_error=ReferenceMissingError("FOREIGN KEY constraint failed", "messages")
        )

        with pytest.raises(NotFound) as exc_info:
            await policy.run("send message", op)

        assert exc_info.value.status_code == 404
        assert op.stores == ["primary"]

    @pytest.mark.asyncio
    async def test_outage_is_a_service_failure(self, fallback):
        policy = DegradationPolicy(fake_primary(), fallback)
        op = RecordingOp(primary_error=StoreConnectionError("connection refused", "listings"))

        with pytest.raises(ServiceFailure) as exc_info:
            await policy.run("fetch listings", op)

        assert exc_info.value.detail == "Failed to fetch listings"
        assert exc_info.value.details == "connection refused"
        assert op.stores == ["primary"]

    @pytest.mark.asyncio
    async def test_domain_errors_propagate(self, fallback):
        policy = DegradationPolicy(fake_primary(), fallback)
        op = RecordingOp(primary_error=NotFound("Conversation not found"))

        with pytest.raises(NotFound):
            await policy.run("send message", op)

        assert op.stores == ["primary"]

    @pytest.mark.asyncio
    async def test_fallback_conflict_is_a_conflict(self, fallback):
        policy = DegradationPolicy(None, fallback)
        await fallback.insert("users", {"name": "Sarah"}, unique_on=("name",))

        with pytest.raises(ConflictError):
            await policy.run(
                "authenticate user",
                lambda store: store.insert("users", {"name": "Sarah"}, unique_on=("name",)),
            )


class TestPolicyFactory:
    """Tests for build_policy / get_policy / reset_policy."""

    def test_build_without_database(self):
        policy = build_policy(Settings(_env_file=None))

        assert policy.primary is None
        assert policy.fallback is not None

    def test_build_with_database_url(self, tmp_path):
        config = Settings(_env_file=None, DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'db.sqlite'}")

        policy = build_policy(config)

        assert isinstance(policy.primary, SqlRecordStore)

    def test_build_with_seed(self):
        policy = build_policy(Settings(_env_file=None, FALLBACK_SEED_LISTINGS=True))

        assert len(policy.fallback._records["listings"]) == 3

    def test_get_policy_is_a_singleton(self):
        with patch("eggconomy.database.core.policy.build_policy") as build:
            build.return_value = MagicMock()

            assert get_policy() is get_policy()
            assert build.call_count == 1

            reset_policy()
            get_policy()
            assert build.call_count == 2


class TestDemoListings:
    def test_three_samples_with_distinct_exchange_types(self):
        listings = demo_listings()

        assert [listing["id"] for listing in listings] == ["1", "2", "3"]
        assert {listing["exchangeType"] for listing in listings} == {"gift", "barter", "cash"}
        assert listings[2]["paymentHandles"] == {"venmo": "@grannybetty"}
