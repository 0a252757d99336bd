"""
DAOs Package — Record Stores
============================

Both stores speak the application shape (camelCase keys) and expose the same
entity-scoped operations, so the service layer is written once.

Contents
--------
- record_store
    `RecordStore` interface.
- sql_record_store
    `SqlRecordStore`: primary store over SQLAlchemy asyncio; normalizes
    shapes and translates driver errors into the store error taxonomy.
- fallback_store
    `FallbackStore`: in-process lists guarded by per-entity locks, optionally
    persisted to a JSON document.
"""
