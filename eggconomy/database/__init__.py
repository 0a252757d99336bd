"""
The `database` package is responsible for all interactions with the application's data.
It provides configuration, entity definitions, the record stores and the
operations built on top of them.

Contents:
    - config:
        Settings and the async SQLAlchemy engine for the primary store.

    - entities:
        SQLAlchemy entity models representing the primary store's tables.

    - daos:
        Record stores: the SQL-backed primary store and the in-process
        fallback store, both behind the `RecordStore` interface.

    - core:
        The degradation policy and the service operations that run through it.

    - normalizer:
        Field-name translation between the application and storage shapes.

    - errors:
        Store error taxonomy (missing relation, constraint violation, outage).
"""
