"""
Record Store Interface

Defines the operations shared by the primary (SQL) store and the in-process
fallback store. Both accept and return application-shape (camelCase) records
as plain dicts, so a logical operation written against this interface runs
unchanged on either backend.

Implementations:
- SqlRecordStore: hosted relational store (SQLAlchemy asyncio)
- FallbackStore: process-local lists guarded by per-entity locks
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

Record = Dict[str, Any]


class RecordStore(ABC):
    """
    Abstract interface for entity-scoped CRUD.

    `entity` is one of the names in `eggconomy.database.entities`
    (``users``, ``listings``, ``conversations``, ``messages``). `where` is a
    dict of application field -> value; all pairs must match (equality).

    Every call is independent; no transaction spans two calls.
    """

    name: str = "store"
    """Short label used in logs ("primary" / "fallback")."""

    supports_account_security: bool = False
    """Whether user records carry lockout and email verification fields."""

    @abstractmethod
    async def find(self, entity: str, where: Optional[Record] = None) -> List[Record]:
        """
        Find records matching every pair in `where` (all records when empty).

        Returns:
            Matching records, in insertion order where the store keeps one
        """
        pass

    async def find_one(self, entity: str, where: Record) -> Optional[Record]:
        """Return the first record matching `where`, or None."""
        records = await self.find(entity, where)
        return records[0] if records else None

    @abstractmethod
    async def insert(
        self, entity: str, record: Record, unique_on: Sequence[str] = ()
    ) -> Record:
        """
        Insert a record and return it as stored (with generated fields).

        Args:
            entity: Entity name
            record: Application-shape record
            unique_on: Fields that must not collide with an existing record

        Raises:
            ConstraintViolationError: If a uniqueness rule rejects the record
        """
        pass

    @abstractmethod
    async def update(self, entity: str, where: Record, patch: Record) -> List[Record]:
        """
        Apply `patch` to every record matching `where`.

        Returns:
            The updated records (empty when nothing matched)
        """
        pass

    @abstractmethod
    async def find_or_insert(
        self, entity: str, where: Record, record: Record
    ) -> Tuple[Record, bool]:
        """
        Return the record matching `where`, inserting `record` when none does.

        Returns:
            (record, created) where `created` is False for an existing match
        """
        pass

    async def save_session(self, session: Record) -> None:
        """Remember the latest authenticated session. Only the fallback store keeps one."""
        return None
