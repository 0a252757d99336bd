"""
Record store error taxonomy.

Stores raise these instead of driver exceptions so the degradation policy can
tell a missing table (fall back) from a duplicate (conflict), a dangling
reference (not found) and an outage (surface a failure).
"""

from typing import Optional


class StoreError(Exception):
    """Any failure of a record store call."""

    def __init__(self, message: str, entity: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.entity = entity


class RelationMissingError(StoreError):
    """The table backing an entity does not exist."""


class ConstraintViolationError(StoreError):
    """A uniqueness constraint rejected the write.

    `reason` is safe to show to end users (e.g. "Name is already taken").
    """

    def __init__(self, message: str, entity: Optional[str] = None, reason: Optional[str] = None):
        super().__init__(message, entity)
        self.reason = reason or "Record conflicts with an existing one"


class StoreConnectionError(StoreError):
    """The store could not be reached or dropped the connection."""


class ReferenceMissingError(StoreError):
    """A foreign key points at a row that does not exist."""
