"""
Pydantic models used for request/response validation and API data contracts.

Two families live here:

- Entity records (`UserRecord`, `ListingRecord`, `ConversationRecord`,
  `MessageRecord`): the canonical in-memory entity types. Python attributes
  are snake_case; the application shape (JSON and record-store dicts) uses
  the camelCase aliases.
- Request/response contracts validated at the HTTP edge.

Validation failures raised while parsing requests are reported as 400.
"""

import re
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

ExchangeType = Literal["gift", "barter", "cash", "hybrid"]
ConversationStatus = Literal["active", "completed", "cancelled"]
Role = Literal["member", "admin"]

VENMO_PATTERN = re.compile(r"^@?[A-Za-z0-9_-]{5,30}$")
PAYPAL_PATTERN = re.compile(r"^([A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}|(paypal\.me/)?[A-Za-z0-9]{1,20})$")
EMAIL_PATTERN = r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$"
PHONE_PATTERN = r"^\+?[0-9 ()-]{7,20}$"


class AppModel(BaseModel):
    """Base model: camelCase aliases, population by either name, UTC datetimes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    @field_validator("*", mode="after")
    @classmethod
    def _utc_datetimes(cls, value):
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_record(self) -> dict:
        """Application-shape dict, as handed to a record store."""
        return self.model_dump(by_alias=True, exclude_none=True)


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ----------------------------------------------------------------------
# Entity records
# ----------------------------------------------------------------------
class PaymentHandles(AppModel):
    """Optional payment handles shown on cash and hybrid listings."""
    venmo: Optional[str] = Field(None, max_length=31)
    paypal: Optional[str] = Field(None, max_length=254)

    @field_validator("venmo", "paypal", mode="before")
    @classmethod
    def _blank(cls, value):
        return _blank_to_none(value)

    @field_validator("venmo")
    @classmethod
    def _venmo_handle(cls, value):
        if value is not None and not VENMO_PATTERN.match(value):
            raise ValueError("Venmo handle must be 5-30 letters, digits, '-' or '_' (optionally starting with '@')")
        return value

    @field_validator("paypal")
    @classmethod
    def _paypal_handle(cls, value):
        if value is not None and not PAYPAL_PATTERN.match(value):
            raise ValueError("PayPal handle must be an email address or a paypal.me username")
        return value


class UserRecord(AppModel):
    """A stored account. `password` is always a bcrypt hash."""
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    password: str
    role: Role = "member"
    created_at: datetime
    last_login: datetime
    email_verified: Optional[bool] = None
    verification_token: Optional[str] = None
    verification_expires: Optional[datetime] = None
    failed_login_attempts: Optional[int] = None
    locked_until: Optional[datetime] = None


class ListingRecord(AppModel):
    id: str
    name: str
    quantity: int
    exchange_type: ExchangeType
    location: str
    notes: Optional[str] = None
    barter_for: Optional[str] = None
    suggested_cash: Optional[str] = None
    payment_handles: Optional[PaymentHandles] = None
    date_posted: datetime


class ListingView(ListingRecord):
    """A listing as rendered: `isNew` is computed at read time."""
    is_new: bool = False


class ConversationRecord(AppModel):
    id: str
    listing_id: str
    buyer_id: str
    seller_id: str
    status: ConversationStatus = "active"
    created_at: datetime
    updated_at: datetime


class MessageRecord(AppModel):
    id: str
    conversation_id: str
    sender_id: str
    content: str
    photo_url: Optional[str] = None
    created_at: datetime


# ----------------------------------------------------------------------
# Requests
# ----------------------------------------------------------------------
class UserCredentials(AppModel):
    """
    Login credentials. The first login for a name registers the account.
    """
    # passwords are taken verbatim
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=False)

    name: str = Field(..., min_length=1, max_length=50)
    """The display name of the user"""
    password: str = Field(..., min_length=1, max_length=128)
    """The plaintext password provided for authentication."""
    email: Optional[str] = Field(None, max_length=255, pattern=EMAIL_PATTERN)
    """Optional email, stored when the account is created."""
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    """Optional phone number, stored when the account is created."""

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", "phone", mode="before")
    @classmethod
    def _blank(cls, value):
        value = _blank_to_none(value)
        return value.strip() if isinstance(value, str) else value


class ListingDraft(AppModel):
    """
    A listing submitted from the "add eggs" form.
    """
    name: str = Field(..., min_length=1, max_length=50)
    quantity: int = Field(..., ge=1, le=1000)
    exchange_type: ExchangeType
    location: str = Field(..., min_length=1, max_length=100)
    notes: Optional[str] = Field(None, max_length=500)
    barter_for: Optional[str] = Field(None, max_length=200)
    suggested_cash: Optional[str] = Field(None, max_length=50)
    payment_handles: Optional[PaymentHandles] = None

    @field_validator("notes", "barter_for", "suggested_cash", mode="before")
    @classmethod
    def _blank(cls, value):
        return _blank_to_none(value)

    @field_validator("payment_handles")
    @classmethod
    def _empty_handles(cls, value):
        if value is not None and value.venmo is None and value.paypal is None:
            return None
        return value


class ConversationRequest(AppModel):
    """
    Represents details needed to open a conversation about a listing.
    """
    listing_id: str = Field(..., min_length=1)
    buyer_id: str = Field(..., min_length=1)
    seller_id: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def _distinct_participants(self):
        if self.buyer_id == self.seller_id:
            raise ValueError("Buyer and seller must be different users")
        return self


class ConversationStatusUpdate(AppModel):
    user_id: str = Field(..., min_length=1)
    status: ConversationStatus


class NewMessage(AppModel):
    """
    Represents a new message to be posted in a conversation.
    """
    conversation_id: str = Field(..., min_length=1)
    """The ID of the conversation the message belongs to."""
    sender_id: str = Field(..., min_length=1)
    """The ID of the author (buyer or seller)."""
    content: str = Field(..., min_length=1, max_length=2000)
    """The text content of the message (trimmed)."""
    photo_url: Optional[str] = Field(None, max_length=2048)
    """Optional attached photo."""

    @field_validator("photo_url", mode="before")
    @classmethod
    def _blank(cls, value):
        return _blank_to_none(value)


# ----------------------------------------------------------------------
# Responses
# ----------------------------------------------------------------------
class SessionUser(AppModel):
    """
    Session returned after a successful login.
    """
    id: str
    name: str
    role: Role = "member"
    is_logged_in: bool = True
    login_time: datetime
    email_verified: Optional[bool] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class AdminStats(AppModel):
    total_users: int
    active_users: int
    total_listings: int
    new_users_today: int
    logins_today: int


class AdminUserRow(AppModel):
    id: str
    name: str
    email: Optional[str] = None
    role: Role = "member"
    created_at: datetime
    last_login: datetime
    listings_count: int = 0


class AdminUsers(AppModel):
    users: List[AdminUserRow]
    total: int
