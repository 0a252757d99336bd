"""
User ORM Model
==============

The ``User`` ORM model represents a marketplace member in the primary store.
It maps to the ``users`` table and carries authentication, verification,
lockout and role information.

Key features
~~~~~~~~~~~~
- Generated UUID primary key (``id``), stored as a string
- Unique ``name`` (case-sensitive) and unique optional ``email``
- bcrypt password hash
- Role (``member`` or ``admin``) resolved at authentication time
- Email verification token and expiry
- Failed-login counter and lock deadline
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import VARCHAR, TEXT, Boolean, DateTime, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from eggconomy.database.config.connection_engine import declarativeBase


class User(declarativeBase):
    """
    ORM model for the `users` table.

    Attributes
    ----------
    id : str
        Primary key. UUID of the user.
    name : str
        Unique display name used to log in.
    email : str | None
        Optional unique email address.
    phone : str | None
        Optional phone number.
    password : str
        bcrypt hash of the password.
    role : str
        "member" or "admin".
    created_at, last_login : datetime
        Account creation and most recent successful login (UTC).
    email_verified : bool
        Whether the email address was confirmed.
    verification_token, verification_expires
        Pending email verification token and its deadline.
    failed_login_attempts : int
        Consecutive failed logins since the last success.
    locked_until : datetime | None
        Logins are rejected until this instant.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(VARCHAR(50), unique=True, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(VARCHAR(255), unique=True, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(VARCHAR(30), nullable=True)
    password: Mapped[str] = mapped_column(TEXT, nullable=False)
    role: Mapped[str] = mapped_column(VARCHAR(20), nullable=False, default="member")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_login: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verification_token: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    verification_expires: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_login_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    locked_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __str__(self) -> str:
        return f"User: id:{self.id}, name: {self.name}, role: {self.role}"
