"""
Message ORM Model
=================

The ``Message`` ORM model represents a single message posted by a buyer or a
seller within a ``Conversation``.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import TEXT, VARCHAR, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from eggconomy.database.config.connection_engine import declarativeBase


class Message(declarativeBase):
    """
    ORM model for the `messages` table.

    Attributes
    ----------
    id : str
        Primary key. UUID of the message.
    conversation_id : str
        Foreign key reference to the `conversations` table.
    sender_id : str
        Author id as the serving store issued it (UUID or account name).
    content : str
        Trimmed message text.
    photo_url : str | None
        Optional attached photo.
    created_at : datetime
        Timestamp when the message was posted (UTC).
    """

    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    conversation_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), ForeignKey("conversations.id"), nullable=False, index=True
    )
    sender_id: Mapped[str] = mapped_column(VARCHAR(64), nullable=False)
    content: Mapped[str] = mapped_column(TEXT, nullable=False)
    photo_url: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __str__(self) -> str:
        return (
            f"Conversation: id:{self.conversation_id}, "
            f"sender: {self.sender_id}, "
            f"message: {self.content}, "
            f"time_created: {self.created_at}"
        )
