"""
Listing ORM Model
=================

The ``Listing`` ORM model stores one egg listing in the ``listings`` table.

The poster ``name`` is an informal reference to ``users.name``; it is not a
foreign key. ``payment_handles`` is a JSON object (``venmo``/``paypal``)
persisted as a unit.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, VARCHAR, TEXT, CheckConstraint, DateTime, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from eggconomy.database.config.connection_engine import declarativeBase


class Listing(declarativeBase):
    """
    ORM model for the `listings` table.

    Attributes
    ----------
    id : str
        Primary key. UUID of the listing.
    name : str
        Poster identity.
    quantity : int
        Number of eggs offered (1..1000).
    exchange_type : str
        One of "gift", "barter", "cash", "hybrid".
    location : str
        Free-text pickup location.
    notes, barter_for, suggested_cash : str | None
        Optional free-text details.
    payment_handles : dict | None
        ``{"venmo": ..., "paypal": ...}``.
    date_posted : datetime
        Creation instant (UTC).
    """

    __tablename__ = "listings"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_listings_quantity_positive"),)

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(VARCHAR(50), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    exchange_type: Mapped[str] = mapped_column(VARCHAR(10), nullable=False)
    location: Mapped[str] = mapped_column(VARCHAR(100), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    barter_for: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    suggested_cash: Mapped[Optional[str]] = mapped_column(VARCHAR(50), nullable=True)
    payment_handles: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    date_posted: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __str__(self) -> str:
        return (
            f"Listing: id:{self.id}, poster: {self.name}, "
            f"quantity: {self.quantity}, exchange: {self.exchange_type}"
        )
