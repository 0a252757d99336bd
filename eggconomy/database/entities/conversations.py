"""
Conversation ORM Model
======================

The ``Conversation`` ORM model links a listing with the buyer and the seller
talking about it. It is stored in the ``conversations`` table.

Key features
~~~~~~~~~~~~
- Generated UUID primary key (``id``)
- Unique triple (``listing_id``, ``buyer_id``, ``seller_id``); creating the
  same conversation twice returns the existing row
- ``status``: ``active`` | ``completed`` | ``cancelled``
- ``updated_at`` bumped whenever a message is posted, so inboxes can be
  ordered by recent activity
"""

import uuid
from datetime import datetime

from sqlalchemy import VARCHAR, DateTime, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from eggconomy.database.config.connection_engine import declarativeBase


class Conversation(declarativeBase):
    """
    ORM model for the `conversations` table.

    Attributes
    ----------
    id : str
        Primary key. UUID of the conversation.
    listing_id : str
        Listing the conversation is about. A plain reference (no foreign key):
        it holds whatever id the serving store issued, UUID or a demo id.
    buyer_id, seller_id : str
        Participants, by the id the serving store issued (UUID or account name).
    status : str
        Lifecycle status.
    created_at, updated_at : datetime
        Creation and last activity instants (UTC).
    """

    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("listing_id", "buyer_id", "seller_id", name="uq_conversations_participants"),
    )

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    listing_id: Mapped[str] = mapped_column(VARCHAR(64), nullable=False)
    buyer_id: Mapped[str] = mapped_column(VARCHAR(64), nullable=False, index=True)
    seller_id: Mapped[str] = mapped_column(VARCHAR(64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(VARCHAR(10), nullable=False, default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __str__(self) -> str:
        return (
            f"Conversation: id:{self.id}, listing: {self.listing_id}, "
            f"buyer: {self.buyer_id}, seller: {self.seller_id}, status: {self.status}"
        )
