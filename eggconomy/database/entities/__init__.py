"""
Entities Package — SQLAlchemy 2.0 ORM Models
============================================

The `entities` package defines the primary store's tables. Column names use
the storage (snake_case) convention; the application (camelCase) shape is
produced by `eggconomy.database.normalizer` at the store boundary.

Tech Stack & Conventions
------------------------
- Portable `Uuid` primary keys stored as strings (PostgreSQL in production,
  SQLite in tests); participant and listing references are plain strings
- Timezone-aware timestamps (UTC)
- SQLAlchemy 2.0 style `Mapped[...]` + `mapped_column(...)`

Contents
--------
- User          -> ``users``
- Listing       -> ``listings``
- Conversation  -> ``conversations``
- Message       -> ``messages``

`ENTITY_MODELS` maps the logical entity names used by the record stores to
their ORM classes.
"""

from eggconomy.database.entities.user import User
from eggconomy.database.entities.listing import Listing
from eggconomy.database.entities.conversations import Conversation
from eggconomy.database.entities.messages import Message

USERS = "users"
LISTINGS = "listings"
CONVERSATIONS = "conversations"
MESSAGES = "messages"

ENTITY_MODELS = {
    USERS: User,
    LISTINGS: Listing,
    CONVERSATIONS: Conversation,
    MESSAGES: Message,
}

__all__ = [
    "User",
    "Listing",
    "Conversation",
    "Message",
    "USERS",
    "LISTINGS",
    "CONVERSATIONS",
    "MESSAGES",
    "ENTITY_MODELS",
]
