"""
Service-layer operations for authentication, listings, conversations,
messages and the admin dashboard.

Every operation is written once against the `RecordStore` interface and
handed to the `DegradationPolicy`, which decides whether the primary or the
fallback store runs it. Business rules (validation, rate limiting, lockout)
live here; field-name translation does not (it happens inside the SQL store).

Each function accepts an optional `now` so callers and tests control the
clock.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from eggconomy.api.models import (
    AdminStats,
    AdminUserRow,
    AdminUsers,
    ConversationRecord,
    ConversationRequest,
    ConversationStatusUpdate,
    ListingDraft,
    ListingRecord,
    ListingView,
    MessageRecord,
    NewMessage,
    SessionUser,
    UserCredentials,
    UserRecord,
)
from eggconomy.crypt.encrypt_decrypt import EncryptionDec
from eggconomy.database.config.config import settings
from eggconomy.database.core.policy import DegradationPolicy
from eggconomy.database.daos.record_store import RecordStore
from eggconomy.database.entities import CONVERSATIONS, LISTINGS, MESSAGES, USERS
from eggconomy.errors import (
    AccountLocked,
    AuthenticationFailed,
    NotFound,
    PermissionDenied,
    RateLimited,
    ValidationFailure,
)

logger = logging.getLogger(__name__)

NEW_LISTING_WINDOW = timedelta(hours=24)
ACTIVE_USER_WINDOW = timedelta(days=7)
RATE_LIMIT_WINDOW = timedelta(hours=1)

ADMIN_SORT_KEYS = ("name", "createdAt", "lastLogin", "listingsCount")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ----------------------------------------------------------------------
# Authentication
# ----------------------------------------------------------------------
def resolve_role(name: str) -> str:
    """Role given to a brand-new account."""
    admins = {admin.lower() for admin in settings.ADMIN_USERNAMES}
    return "admin" if name.lower() in admins else "member"


async def _register_user(store: RecordStore, credentials: UserCredentials, now: datetime) -> UserRecord:
    enc = EncryptionDec()
    if not enc.is_valid_password(credentials.password):
        raise ValidationFailure(
            "Password is invalid. Must contain at least 8 characters, 1 lowercase, "
            "1 uppercase, 1 digit, and 1 special character."
        )
    record = {
        "name": credentials.name,
        "email": credentials.email,
        "phone": credentials.phone,
        "password": enc.hash_password(credentials.password),
        "role": resolve_role(credentials.name),
        "createdAt": now,
        "lastLogin": now,
    }
    if store.supports_account_security:
        record.update({"emailVerified": False, "failedLoginAttempts": 0})
        if credentials.email:
            record["verificationToken"] = enc.generate_verification_token()
            record["verificationExpires"] = now + timedelta(hours=settings.VERIFICATION_EXPIRE_HOURS)
            logger.debug(f"Verification token issued for {credentials.name}")
    record = {key: value for key, value in record.items() if value is not None}
    created = await store.insert(USERS, record, unique_on=("name", "email"))
    logger.info(f"Registered user {credentials.name} in {store.name} store")
    return UserRecord.model_validate(created)


async def _check_password(store: RecordStore, user: UserRecord, password: str, now: datetime) -> UserRecord:
    enc = EncryptionDec()
    attempts = 0
    if store.supports_account_security:
        if user.locked_until is not None and user.locked_until > now:
            raise AccountLocked(
                f"Too many failed attempts. Try again after {user.locked_until.isoformat()}"
            )
        if user.locked_until is None:
            attempts = user.failed_login_attempts or 0

    if not enc.check_passwords(password, user.password):
        if store.supports_account_security:
            attempts += 1
            patch = {"failedLoginAttempts": attempts, "lockedUntil": None}
            if attempts >= settings.MAX_FAILED_LOGINS:
                patch["lockedUntil"] = now + timedelta(minutes=settings.LOCKOUT_MINUTES)
                logger.warning(f"Locking account {user.name} after {attempts} failed logins")
            await store.update(USERS, {"name": user.name}, patch)
        raise AuthenticationFailed("Password is wrong")

    patch = {"lastLogin": now}
    if store.supports_account_security:
        patch.update({"failedLoginAttempts": 0, "lockedUntil": None})
    updated = await store.update(USERS, {"name": user.name}, patch)
    if not updated:
        raise NotFound("User no longer exists")
    return UserRecord.model_validate(updated[0])


async def login_user(
    policy: DegradationPolicy, credentials: UserCredentials, now: Optional[datetime] = None
) -> SessionUser:
    """
    Authenticate a user by name and password.

    The first login for a name registers the account (implicit registration).
    Later logins verify the bcrypt hash and refresh `lastLogin`. On the
    primary store, `MAX_FAILED_LOGINS` consecutive failures lock the account
    for `LOCKOUT_MINUTES`; while locked, every attempt is rejected even with
    the right password.

    Raises
    ------
    ValidationFailure
        New account with a password that fails the complexity rules.
    AuthenticationFailed
        Wrong password.
    AccountLocked
        Account locked (primary store only).
    ConflictError
        Email already registered to another account.
    """
    now = now or utcnow()

    async def authenticate(store: RecordStore) -> SessionUser:
        existing = await store.find_one(USERS, {"name": credentials.name})
        if existing is None:
            user = await _register_user(store, credentials, now)
        else:
            user = await _check_password(store, UserRecord.model_validate(existing), credentials.password, now)
        session = SessionUser(
            id=user.id,
            name=user.name,
            role=user.role,
            login_time=now,
            email_verified=user.email_verified,
        )
        await store.save_session(session.model_dump(by_alias=True, mode="json"))
        return session

    return await policy.run("authenticate user", authenticate)


async def verify_email(policy: DegradationPolicy, token: str, now: Optional[datetime] = None) -> str:
    """
    Confirm an email address from the token sent at registration.

    Returns
    -------
    str
        A confirmation message.

    Raises
    ------
    ValidationFailure
        Unknown, expired or already-used token.
    """
    if not token:
        raise ValidationFailure("Verification token is required")
    now = now or utcnow()

    async def verify(store: RecordStore) -> str:
        found = await store.find_one(USERS, {"verificationToken": token})
        if found is None:
            raise ValidationFailure("Invalid or expired verification token")
        user = UserRecord.model_validate(found)
        if user.verification_expires is not None and user.verification_expires < now:
            raise ValidationFailure("Verification token has expired")
        if user.email_verified:
            raise ValidationFailure("Email is already verified")
        await store.update(
            USERS,
            {"id": user.id},
            {"emailVerified": True, "verificationToken": None, "verificationExpires": None},
        )
        return "Email verified successfully! You can now log in to your account."

    return await policy.run("verify email", verify)


# ----------------------------------------------------------------------
# Listings
# ----------------------------------------------------------------------
def is_new_listing(date_posted: datetime, now: datetime) -> bool:
    """A listing is "new" while it is less than 24 hours old."""
    return date_posted > now - NEW_LISTING_WINDOW


def _matches_query(listing: ListingRecord, query: str) -> bool:
    needle = query.lower()
    haystack = (listing.name, listing.location, listing.notes, listing.barter_for)
    return any(needle in value.lower() for value in haystack if value)


async def list_listings(
    policy: DegradationPolicy,
    exchange_type: Optional[str] = None,
    query: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[ListingView]:
    """
    Listings newest first, optionally filtered by exchange type and a
    case-insensitive substring search.
    """
    now = now or utcnow()
    where = {"exchangeType": exchange_type} if exchange_type else None
    records = await policy.run("fetch listings", lambda store: store.find(LISTINGS, where))

    listings = [ListingRecord.model_validate(record) for record in records]
    if query and query.strip():
        listings = [listing for listing in listings if _matches_query(listing, query.strip())]
    listings.sort(key=lambda listing: listing.date_posted, reverse=True)
    return [
        ListingView(**listing.model_dump(), is_new=is_new_listing(listing.date_posted, now))
        for listing in listings
    ]


async def create_listing(
    policy: DegradationPolicy, draft: ListingDraft, now: Optional[datetime] = None
) -> ListingView:
    """
    Store a new listing posted now. Posts by the same name are serialized
    within this process so the hourly count cannot be overrun; separate
    processes sharing one primary store are not coordinated.

    Raises
    ------
    RateLimited
        The poster already created `LISTINGS_PER_HOUR` listings in the last hour.
    """
    now = now or utcnow()

    async def create(store: RecordStore) -> ListingRecord:
        previous = await store.find(LISTINGS, {"name": draft.name})
        since = now - RATE_LIMIT_WINDOW
        recent = [
            record for record in previous
            if ListingRecord.model_validate(record).date_posted >= since
        ]
        if len(recent) >= settings.LISTINGS_PER_HOUR:
            raise RateLimited("You have posted too many listings in the last hour. Please try again later.")
        record = draft.to_record()
        record["datePosted"] = now
        created = await store.insert(LISTINGS, record)
        logger.info(f"Listing {created['id']} created by {draft.name} in {store.name} store")
        return ListingRecord.model_validate(created)

    # count and insert must not interleave for one poster
    async with policy.lock(f"listings:{draft.name}"):
        listing = await policy.run("create listing", create)
    return ListingView(**listing.model_dump(), is_new=is_new_listing(listing.date_posted, now))


# ----------------------------------------------------------------------
# Conversations & messages
# ----------------------------------------------------------------------
async def create_conversation(
    policy: DegradationPolicy, request: ConversationRequest, now: Optional[datetime] = None
) -> ConversationRecord:
    """
    Open (or reopen) the conversation for a listing between a buyer and a
    seller. Idempotent: the same triple always yields the same conversation.
    """
    now = now or utcnow()
    where = {
        "listingId": request.listing_id,
        "buyerId": request.buyer_id,
        "sellerId": request.seller_id,
    }
    record = {**where, "status": "active", "createdAt": now, "updatedAt": now}

    async def open_conversation(store: RecordStore):
        conversation, created = await store.find_or_insert(CONVERSATIONS, where, record)
        if created:
            logger.info(f"Conversation {conversation['id']} opened in {store.name} store")
        return conversation

    conversation = await policy.run("create conversation", open_conversation)
    return ConversationRecord.model_validate(conversation)


async def get_conversations(policy: DegradationPolicy, user_id: str) -> List[ConversationRecord]:
    """Conversations where the user is buyer or seller, most recent activity first."""
    if not user_id:
        raise ValidationFailure("User ID is required")

    async def fetch(store: RecordStore):
        as_buyer = await store.find(CONVERSATIONS, {"buyerId": user_id})
        as_seller = await store.find(CONVERSATIONS, {"sellerId": user_id})
        return as_buyer + as_seller

    records = await policy.run("fetch conversations", fetch)
    unique = {record["id"]: ConversationRecord.model_validate(record) for record in records}
    return sorted(unique.values(), key=lambda conversation: conversation.updated_at, reverse=True)


async def update_conversation_status(
    policy: DegradationPolicy,
    conversation_id: str,
    update: ConversationStatusUpdate,
    now: Optional[datetime] = None,
) -> ConversationRecord:
    """Mark a conversation completed/cancelled (or active again). Participants only."""
    now = now or utcnow()

    async def change(store: RecordStore):
        found = await store.find_one(CONVERSATIONS, {"id": conversation_id})
        if found is None:
            raise NotFound("Conversation not found")
        conversation = ConversationRecord.model_validate(found)
        if update.user_id not in (conversation.buyer_id, conversation.seller_id):
            raise PermissionDenied("Only the buyer and the seller can change this conversation")
        updated = await store.update(
            CONVERSATIONS, {"id": conversation_id}, {"status": update.status, "updatedAt": now}
        )
        return updated[0]

    return ConversationRecord.model_validate(await policy.run("update conversation", change))


async def create_message(
    policy: DegradationPolicy, message: NewMessage, now: Optional[datetime] = None
) -> MessageRecord:
    """
    Post a message and bump the conversation's `updatedAt`.

    Raises
    ------
    NotFound
        Unknown conversation.
    PermissionDenied
        Sender is neither the buyer nor the seller.
    ValidationFailure
        Conversation is no longer active.
    """
    now = now or utcnow()

    async def post(store: RecordStore):
        found = await store.find_one(CONVERSATIONS, {"id": message.conversation_id})
        if found is None:
            raise NotFound("Conversation not found")
        conversation = ConversationRecord.model_validate(found)
        if message.sender_id not in (conversation.buyer_id, conversation.seller_id):
            raise PermissionDenied("Only the buyer and the seller can post in this conversation")
        if conversation.status != "active":
            raise ValidationFailure(f"Conversation is {conversation.status}")
        record = {
            "conversationId": conversation.id,
            "senderId": message.sender_id,
            "content": message.content,
            "createdAt": now,
        }
        if message.photo_url:
            record["photoUrl"] = message.photo_url
        # bump first: a failed bump leaves no message behind
        await store.update(CONVERSATIONS, {"id": conversation.id}, {"updatedAt": now})
        return await store.insert(MESSAGES, record)

    return MessageRecord.model_validate(await policy.run("send message", post))


async def get_messages(
    policy: DegradationPolicy, conversation_id: str, since: Optional[datetime] = None
) -> List[MessageRecord]:
    """
    Messages of a conversation in chronological order. Pollers pass the
    `createdAt` of the last message they hold as `since` to receive only newer
    ones.
    """
    if not conversation_id:
        raise ValidationFailure("Conversation ID is required")
    records = await policy.run(
        "fetch messages",
        lambda store: store.find(MESSAGES, {"conversationId": conversation_id}),
    )
    messages = [MessageRecord.model_validate(record) for record in records]
    if since is not None:
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        messages = [message for message in messages if message.created_at > since]
    return sorted(messages, key=lambda message: message.created_at)


# ----------------------------------------------------------------------
# Admin dashboard
# ----------------------------------------------------------------------
async def _users_and_listings(policy: DegradationPolicy):
    async def fetch(store: RecordStore):
        return await store.find(USERS), await store.find(LISTINGS)

    users, listings = await policy.run("load dashboard data", fetch)
    return (
        [UserRecord.model_validate(record) for record in users],
        [ListingRecord.model_validate(record) for record in listings],
    )


async def admin_stats(policy: DegradationPolicy, now: Optional[datetime] = None) -> AdminStats:
    """Headline counts for the admin dashboard."""
    now = now or utcnow()
    users, listings = await _users_and_listings(policy)
    today = now.date()
    return AdminStats(
        total_users=len(users),
        active_users=sum(1 for user in users if now - user.last_login <= ACTIVE_USER_WINDOW),
        total_listings=len(listings),
        new_users_today=sum(1 for user in users if user.created_at.astimezone(timezone.utc).date() == today),
        logins_today=sum(1 for user in users if user.last_login.astimezone(timezone.utc).date() == today),
    )


async def admin_users(
    policy: DegradationPolicy, search: Optional[str] = None, sort_by: str = "createdAt"
) -> AdminUsers:
    """Account table with per-user listing counts, searchable by name."""
    if sort_by not in ADMIN_SORT_KEYS:
        raise ValidationFailure(f"sort_by must be one of {', '.join(ADMIN_SORT_KEYS)}")
    users, listings = await _users_and_listings(policy)

    counts = {}
    for listing in listings:
        counts[listing.name] = counts.get(listing.name, 0) + 1

    rows = [
        AdminUserRow(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            created_at=user.created_at,
            last_login=user.last_login,
            listings_count=counts.get(user.name, 0),
        )
        for user in users
        if not search or search.lower() in user.name.lower()
    ]
    if sort_by == "name":
        rows.sort(key=lambda row: row.name.lower())
    elif sort_by == "createdAt":
        rows.sort(key=lambda row: row.created_at, reverse=True)
    elif sort_by == "lastLogin":
        rows.sort(key=lambda row: row.last_login, reverse=True)
    else:
        rows.sort(key=lambda row: row.listings_count, reverse=True)
    return AdminUsers(users=rows, total=len(rows))


async def admin_delete_user(policy: DegradationPolicy, name: str) -> int:
    """Remove an account from the fallback store (the primary copy is untouched)."""
    removed = await policy.fallback.delete(USERS, {"name": name})
    if not removed:
        raise NotFound(f"No account named {name}")
    logger.info(f"Admin removed fallback account {name}")
    return removed


async def admin_delete_listing(policy: DegradationPolicy, listing_id: str) -> int:
    """Remove a listing from the fallback store (the primary copy is untouched)."""
    removed = await policy.fallback.delete(LISTINGS, {"id": listing_id})
    if not removed:
        raise NotFound("Listing not found")
    logger.info(f"Admin removed fallback listing {listing_id}")
    return removed


async def admin_clear_all(policy: DegradationPolicy) -> None:
    """Wipe every fallback record."""
    await policy.fallback.clear()
    logger.warning("Admin cleared all fallback data")
