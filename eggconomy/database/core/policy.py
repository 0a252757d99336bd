"""
Degradation Policy

Chooses, for every logical operation, which record store serves it:

- Primary store unconfigured -> the fallback store, unconditionally. No
  network call is attempted.
- Primary store configured -> the primary store first.
    * success: its result is returned.
    * `RelationMissingError`: the same operation is re-run once against the
      fallback store within the same request. This is not a mode switch;
      the next request tries the primary store again.
    * `ConstraintViolationError`: reported as a conflict, never a fallback.
    * `ReferenceMissingError`: reported as not found, never a fallback.
    * any other store error: reported as a generic failure, never a
      fallback, so an outage is not mistaken for a missing schema.

Writes are not mirrored: a record written through one store is invisible to
the other.

Usage:
    from eggconomy.database.core.policy import get_policy

    policy = get_policy()
    listings = await policy.run("fetch listings", lambda store: store.find("listings"))
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar

from eggconomy.api.models import ListingRecord, PaymentHandles
from eggconomy.database.config.config import Settings, settings
from eggconomy.database.config.connection_engine import create_connection_engine
from eggconomy.database.daos.fallback_store import FallbackStore
from eggconomy.database.daos.record_store import Record, RecordStore
from eggconomy.database.daos.sql_record_store import SqlRecordStore
from eggconomy.database.errors import (
    ConstraintViolationError,
    ReferenceMissingError,
    RelationMissingError,
    StoreError,
)
from eggconomy.errors import ConflictError, NotFound, ServiceFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[RecordStore], Awaitable[T]]


class DegradationPolicy:
    """
    Per-request selection between the primary and the fallback store.

    Parameters
    ----------
    primary : RecordStore | None
        The hosted store, or None when it is not configured.
    fallback : FallbackStore
        The in-process store.
    """

    def __init__(self, primary: Optional[RecordStore], fallback: FallbackStore):
        self.primary = primary
        self.fallback = fallback
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def primary_configured(self) -> bool:
        return self.primary is not None

    def lock(self, key: str) -> asyncio.Lock:
        """Lock serializing check-then-write operations on `key` within this process."""
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def run(self, operation: str, op: Operation) -> T:
        """
        Execute `op` against the store chosen for this request.

        Args:
            operation: Human-readable name used in logs and failure messages
            op: Coroutine function taking the chosen store

        Raises:
            ConflictError: A constraint rejected a write
            ServiceFailure: The store failed for any other reason
            EggconomyError: Domain errors raised by `op` propagate unchanged
        """
        if self.primary is None:
            logger.debug(f"{operation}: primary store not configured, using fallback")
            return await self._execute(operation, self.fallback, op)

        try:
            return await self._execute(operation, self.primary, op)
        except RelationMissingError as e:
            logger.warning(
                f"{operation}: table '{e.entity}' not found in primary store, using fallback"
            )
            return await self._execute(operation, self.fallback, op)

    async def _execute(self, operation: str, store: RecordStore, op: Operation) -> T:
        try:
            return await op(store)
        except RelationMissingError:
            if store is self.fallback:
                raise ServiceFailure(f"Failed to {operation}", details="fallback store is missing an entity")
            raise
        except ReferenceMissingError as e:
            logger.info(f"{operation}: {store.name} store has no row for a referenced id ({e.message})")
            raise NotFound("Referenced record does not exist") from e
        except ConstraintViolationError as e:
            logger.info(f"{operation}: rejected by {store.name} store ({e.reason})")
            raise ConflictError(e.reason) from e
        except StoreError as e:
            logger.error(f"{operation}: {store.name} store failed. Error Message: {e.message}")
            raise ServiceFailure(f"Failed to {operation}", details=e.message) from e


def demo_listings(now: Optional[datetime] = None) -> List[Record]:
    """The three sample listings the marketplace shipped with."""
    now = now or datetime.now(timezone.utc)
    samples = [
        ListingRecord(
            id="1",
            name="Sarah from Berea",
            quantity=12,
            exchange_type="gift",
            location="Berea, KY",
            notes="Fresh from our backyard hens! Laid this morning.",
            date_posted=now - timedelta(days=1),
        ),
        ListingRecord(
            id="2",
            name="Mike's Farm",
            quantity=24,
            exchange_type="barter",
            barter_for="Fresh vegetables or homemade bread",
            location="Richmond, KY",
            notes="Organic, free-range eggs. Looking to trade for garden produce.",
            date_posted=now - timedelta(days=2),
        ),
        ListingRecord(
            id="3",
            name="Granny Betty",
            quantity=6,
            exchange_type="cash",
            suggested_cash="$3/dozen",
            payment_handles=PaymentHandles(venmo="@grannybetty"),
            location="Berea, KY",
            notes="Small batch, very fresh. Perfect for baking!",
            date_posted=now - timedelta(days=3),
        ),
    ]
    return [listing.to_record() for listing in samples]


def build_policy(config: Settings = settings) -> DegradationPolicy:
    """Build a policy from settings: SQL primary when configured, fallback always."""
    engine = create_connection_engine(config)
    primary = SqlRecordStore(engine) if engine is not None else None
    fallback = FallbackStore(
        path=config.FALLBACK_STORE_PATH,
        seed=demo_listings() if config.FALLBACK_SEED_LISTINGS else None,
    )
    if primary is None:
        logger.info("Primary store not configured; all requests use the fallback store")
    return DegradationPolicy(primary, fallback)


_policy: Optional[DegradationPolicy] = None


def get_policy() -> DegradationPolicy:
    """Return the process-wide policy, building it on first use."""
    global _policy
    if _policy is None:
        _policy = build_policy()
    return _policy


def reset_policy() -> None:
    """Drop the process-wide policy (next `get_policy()` rebuilds it)."""
    global _policy
    _policy = None
