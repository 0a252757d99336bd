"""
Fallback Store

Purpose
-------
In-process record store used when the primary database is unconfigured or
missing the expected tables. Holds application-shape records in one list per
entity.

Design
------
- Each entity list is guarded by its own `asyncio.Lock`. Check-then-insert
  (`unique_on`) and `find_or_insert` run entirely under that lock, so two
  concurrent registrations of the same name cannot both succeed.
- Records are deep-copied on the way in and out; callers never share
  mutable state with the store.
- Optionally persisted to a JSON document (the same keys the browser build
  used in local storage). Without a path, data lives for the process
  lifetime only.
- User records use the account name as their id and carry no lockout or
  verification fields (`supports_account_security = False`).

Keys of the persisted document
------------------------------
- eggAccounts       -> users
- eggListings       -> listings
- eggConversations  -> conversations
- eggMessages       -> messages
- userSession       -> latest authenticated session snapshot
"""

import asyncio
import copy
import json
import logging
import os
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from eggconomy.database.daos.record_store import Record, RecordStore
from eggconomy.database.entities import CONVERSATIONS, LISTINGS, MESSAGES, USERS
from eggconomy.database.errors import ConstraintViolationError, StoreError

logger = logging.getLogger(__name__)

STORAGE_KEYS = {
    USERS: "eggAccounts",
    LISTINGS: "eggListings",
    CONVERSATIONS: "eggConversations",
    MESSAGES: "eggMessages",
}
SESSION_KEY = "userSession"


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _matches(record: Record, where: Optional[Record]) -> bool:
    if not where:
        return True
    return all(record.get(key) == value for key, value in where.items())


class FallbackStore(RecordStore):
    """
    Process-local record store.

    Parameters
    ----------
    path : str | None
        JSON document to load on start and rewrite after every mutation.
    seed : Iterable[Record] | None
        Listings inserted when the store starts empty.
    """

    name = "fallback"
    supports_account_security = False

    def __init__(self, path: Optional[str] = None, seed: Optional[Iterable[Record]] = None):
        self.path = path
        self._records: Dict[str, List[Record]] = {entity: [] for entity in STORAGE_KEYS}
        self._locks: Dict[str, asyncio.Lock] = {entity: asyncio.Lock() for entity in STORAGE_KEYS}
        self._session: Optional[Record] = None
        if path and os.path.exists(path):
            self._load()
        if seed and not self._records[LISTINGS]:
            self._records[LISTINGS] = [copy.deepcopy(dict(record)) for record in seed]

    # ------------------------------------------------------------------
    # persistence
    # ------------------------------------------------------------------
    def _load(self) -> None:
        with open(self.path, "r", encoding="utf-8") as fh:
            document = json.load(fh)
        for entity, key in STORAGE_KEYS.items():
            self._records[entity] = list(document.get(key, []))
        self._session = document.get(SESSION_KEY)
        logger.info(f"Loaded fallback store from {self.path}")

    def _persist(self) -> None:
        if not self.path:
            return
        document: Dict[str, Any] = {key: self._records[entity] for entity, key in STORAGE_KEYS.items()}
        document[SESSION_KEY] = self._session
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as fh:
            json.dump(document, fh, default=_json_default, indent=2)
        os.replace(tmp_path, self.path)

    # ------------------------------------------------------------------
    # RecordStore
    # ------------------------------------------------------------------
    def _entity(self, entity: str) -> List[Record]:
        try:
            return self._records[entity]
        except KeyError:
            raise StoreError(f"Unknown entity '{entity}'", entity)

    def _lock(self, entity: str) -> asyncio.Lock:
        self._entity(entity)
        return self._locks[entity]

    def _select(self, entity: str, where: Optional[Record]) -> List[Record]:
        return [record for record in self._entity(entity) if _matches(record, where)]

    def _check_unique(self, entity: str, record: Record, unique_on: Sequence[str]) -> None:
        for field in unique_on:
            value = record.get(field)
            if value is None:
                continue
            if self._select(entity, {field: value}):
                raise ConstraintViolationError(
                    f"{entity}.{field} '{value}' already exists",
                    entity,
                    f"{field.capitalize()} is already taken",
                )

    def _add(self, entity: str, record: Record) -> Record:
        stored = copy.deepcopy(dict(record))
        if not stored.get("id"):
            # accounts are keyed by name on this path
            if entity == USERS and stored.get("name"):
                stored["id"] = stored["name"]
            else:
                stored["id"] = str(uuid.uuid4())
        self._entity(entity).append(stored)
        self._persist()
        return copy.deepcopy(stored)

    async def find(self, entity: str, where: Optional[Record] = None) -> List[Record]:
        async with self._lock(entity):
            return copy.deepcopy(self._select(entity, where))

    async def insert(self, entity: str, record: Record, unique_on: Sequence[str] = ()) -> Record:
        async with self._lock(entity):
            self._check_unique(entity, record, unique_on)
            return self._add(entity, record)

    async def update(self, entity: str, where: Record, patch: Record) -> List[Record]:
        async with self._lock(entity):
            matched = self._select(entity, where)
            for record in matched:
                record.update(copy.deepcopy(dict(patch)))
            if matched:
                self._persist()
            return copy.deepcopy(matched)

    async def find_or_insert(self, entity: str, where: Record, record: Record) -> Tuple[Record, bool]:
        async with self._lock(entity):
            existing = self._select(entity, where)
            if existing:
                return copy.deepcopy(existing[0]), False
            return self._add(entity, record), True

    # ------------------------------------------------------------------
    # fallback-only operations
    # ------------------------------------------------------------------
    async def delete(self, entity: str, where: Record) -> int:
        """Remove every record matching `where`; returns how many were removed."""
        async with self._lock(entity):
            records = self._entity(entity)
            kept = [record for record in records if not _matches(record, where)]
            removed = len(records) - len(kept)
            self._records[entity] = kept
            if removed:
                self._persist()
            return removed

    async def clear(self) -> None:
        """Drop every record of every entity and the stored session."""
        for entity in STORAGE_KEYS:
            async with self._locks[entity]:
                self._records[entity] = []
        self._session = None
        self._persist()

    async def save_session(self, session: Record) -> None:
        """Remember the latest authenticated session under ``userSession``."""
        async with self._locks[USERS]:
            self._session = copy.deepcopy(dict(session))
            self._persist()

    @property
    def session(self) -> Optional[Record]:
        return copy.deepcopy(self._session)
