"""
Shape Normalizer
================

Translates records between the primary store's snake_case columns and the
application's camelCase fields.

- `to_storage_shape` and `to_application_shape` are exact inverses for every
  mapped field.
- Fields without a mapping (``id``, ``name``, ``quantity``...) and unknown
  extra fields pass through unchanged.
- Nested values such as ``paymentHandles`` are moved as a unit; their inner
  keys (``venmo``/``paypal``) are identical in both shapes and are never
  flattened.

Only the SQL record store calls these functions. The fallback store keeps
application-shape records, which contain no storage keys, so there is nothing
to translate on that path.
"""

from typing import Any, Dict, Mapping

from eggconomy.database.entities import CONVERSATIONS, LISTINGS, MESSAGES, USERS

# application field -> storage column
FIELD_MAPS: Dict[str, Dict[str, str]] = {
    USERS: {
        "createdAt": "created_at",
        "lastLogin": "last_login",
        "emailVerified": "email_verified",
        "verificationToken": "verification_token",
        "verificationExpires": "verification_expires",
        "failedLoginAttempts": "failed_login_attempts",
        "lockedUntil": "locked_until",
    },
    LISTINGS: {
        "exchangeType": "exchange_type",
        "datePosted": "date_posted",
        "barterFor": "barter_for",
        "suggestedCash": "suggested_cash",
        "paymentHandles": "payment_handles",
    },
    CONVERSATIONS: {
        "listingId": "listing_id",
        "buyerId": "buyer_id",
        "sellerId": "seller_id",
        "createdAt": "created_at",
        "updatedAt": "updated_at",
    },
    MESSAGES: {
        "conversationId": "conversation_id",
        "senderId": "sender_id",
        "photoUrl": "photo_url",
        "createdAt": "created_at",
    },
}

_INVERSE_MAPS: Dict[str, Dict[str, str]] = {
    entity: {storage: app for app, storage in mapping.items()}
    for entity, mapping in FIELD_MAPS.items()
}


def _rename(record: Mapping[str, Any], mapping: Mapping[str, str]) -> Dict[str, Any]:
    return {mapping.get(key, key): value for key, value in record.items()}


def to_storage_shape(entity: str, record: Mapping[str, Any]) -> Dict[str, Any]:
    """Rename application (camelCase) fields of `record` to storage columns."""
    return _rename(record, FIELD_MAPS[entity])


def to_application_shape(entity: str, record: Mapping[str, Any]) -> Dict[str, Any]:
    """Rename storage (snake_case) columns of `record` to application fields."""
    return _rename(record, _INVERSE_MAPS[entity])
