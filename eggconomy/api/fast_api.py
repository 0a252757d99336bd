"""
FastAPI Router — Auth • Listings • Conversations • Messages • Admin
===================================================================

Purpose
-------
Defines the HTTP API for:
- Authentication: login (implicit registration), logout, current user,
  email verification
- Listings: browse/filter/search, create
- Conversations: open (idempotent), list, change status; messages: post, poll
- Admin dashboard: stats, accounts table, fallback-data removal

Key Notes
---------
- Input validation via Pydantic models in `eggconomy.api.models`
  (validation errors are answered with 400 by the app).
- Every operation is delegated to `eggconomy.database.core.funcs`, which
  routes it through the degradation policy.
- Auth cookie: `token` (JWT). Admin routes require the `admin` role claim.
- Service errors become `HTTPException`s with their status code; infrastructure
  failures carry a generic `error` and a developer `details` field.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Query, Response

from eggconomy.api.models import (
    ConversationRequest,
    ConversationStatusUpdate,
    ExchangeType,
    ListingDraft,
    NewMessage,
    UserCredentials,
)
from eggconomy.api.utils import session_token, verify_token
from eggconomy.database.config.config import settings
from eggconomy.database.core import funcs
from eggconomy.database.core.policy import DegradationPolicy, get_policy
from eggconomy.errors import EggconomyError, ServiceFailure

router = APIRouter()
"""Creates the FastAPI router in which we define its routes"""


def http_error(error: EggconomyError) -> HTTPException:
    """Translate a service error into the HTTP error returned to the client."""
    if isinstance(error, ServiceFailure):
        return HTTPException(
            status_code=error.status_code,
            detail={"error": error.detail, "details": error.details},
        )
    return HTTPException(status_code=error.status_code, detail=error.detail)


def current_claims(token: Optional[str] = Cookie(None)) -> dict:
    """Claims of the session cookie; 401 when missing or invalid."""
    if not token:
        raise HTTPException(status_code=401, detail="Missing Token")
    claims = verify_token(token)
    if not claims:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return claims


def require_admin(claims: dict = Depends(current_claims)) -> dict:
    if claims.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return claims


# ----------------------------------------------------------------------
# Auth
# ----------------------------------------------------------------------
@router.post("/auth/login")
async def login(data: UserCredentials, response: Response, policy: DegradationPolicy = Depends(get_policy)):
    """Authenticate (or register) a user and set a signed JWT cookie.

    Request body:
        UserCredentials {name, password, email?, phone?}

    Response:
        200: {'success': True, 'user': {...}}
        400: new account with an invalid password
        401: wrong password
        409: email already registered
        423: account locked
    """
    try:
        user = await funcs.login_user(policy, data)
    except EggconomyError as e:
        raise http_error(e)
    response.set_cookie(
        key="token",
        value=session_token(user),
        httponly=True,
        secure=settings.FRONTEND_URL.startswith("https"),
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    return {"success": True, "user": user}


@router.post("/auth/logout")
async def logout(response: Response):
    """Clear the session cookie."""
    response.delete_cookie("token")
    return {"success": True}


@router.get("/auth/me")
async def me(claims: dict = Depends(current_claims)):
    """Return the current user's identity from the JWT cookie."""
    return {"id": claims.get("uid"), "name": claims.get("sub"), "role": claims.get("role")}


@router.get("/verify-email")
async def verify_email(token: str = "", policy: DegradationPolicy = Depends(get_policy)):
    """Confirm an email address with the token from the verification link."""
    try:
        message = await funcs.verify_email(policy, token)
    except EggconomyError as e:
        raise http_error(e)
    return {"success": True, "message": message}


# ----------------------------------------------------------------------
# Listings
# ----------------------------------------------------------------------
@router.get("/listings")
async def get_listings(
    exchange_type: Optional[ExchangeType] = Query(None, alias="exchangeType"),
    q: Optional[str] = Query(None, max_length=100),
    policy: DegradationPolicy = Depends(get_policy),
):
    """Listings newest first, filterable by exchange type and a search string."""
    try:
        listings = await funcs.list_listings(policy, exchange_type=exchange_type, query=q)
    except EggconomyError as e:
        raise http_error(e)
    return {"listings": listings}


@router.post("/listings", status_code=201)
async def new_listing(data: ListingDraft, policy: DegradationPolicy = Depends(get_policy)):
    """Create a listing. 429 when the poster exceeded the hourly limit."""
    try:
        listing = await funcs.create_listing(policy, data)
    except EggconomyError as e:
        raise http_error(e)
    return {"success": True, "listing": listing}


# ----------------------------------------------------------------------
# Conversations & messages
# ----------------------------------------------------------------------
@router.get("/conversations")
async def get_user_conversations(
    user_id: str = Query("", alias="userId"), policy: DegradationPolicy = Depends(get_policy)
):
    """List of conversations where the user is buyer or seller."""
    try:
        conversations = await funcs.get_conversations(policy, user_id)
    except EggconomyError as e:
        raise http_error(e)
    return {"conversations": conversations}


@router.post("/conversations")
async def new_conversation(data: ConversationRequest, policy: DegradationPolicy = Depends(get_policy)):
    """Open the conversation for (listing, buyer, seller), or return the existing one."""
    try:
        conversation = await funcs.create_conversation(policy, data)
    except EggconomyError as e:
        raise http_error(e)
    return {"conversation": conversation}


@router.post("/conversations/{conversation_id}/status")
async def change_conversation_status(
    conversation_id: str, data: ConversationStatusUpdate, policy: DegradationPolicy = Depends(get_policy)
):
    """Mark a conversation completed, cancelled or active."""
    try:
        conversation = await funcs.update_conversation_status(policy, conversation_id, data)
    except EggconomyError as e:
        raise http_error(e)
    return {"conversation": conversation}


@router.get("/messages")
async def get_messages(
    conversation_id: str = Query("", alias="conversationId"),
    since: Optional[datetime] = None,
    policy: DegradationPolicy = Depends(get_policy),
):
    """Messages of a conversation, oldest first; `since` returns only newer ones (polling)."""
    try:
        messages = await funcs.get_messages(policy, conversation_id, since=since)
    except EggconomyError as e:
        raise http_error(e)
    return {"messages": messages}


@router.post("/messages", status_code=201)
async def new_message(data: NewMessage, policy: DegradationPolicy = Depends(get_policy)):
    """Post a message in a conversation."""
    try:
        message = await funcs.create_message(policy, data)
    except EggconomyError as e:
        raise http_error(e)
    return {"message": message}


# ----------------------------------------------------------------------
# Admin
# ----------------------------------------------------------------------
@router.get("/admin/stats", dependencies=[Depends(require_admin)])
async def get_admin_stats(policy: DegradationPolicy = Depends(get_policy)):
    try:
        return await funcs.admin_stats(policy)
    except EggconomyError as e:
        raise http_error(e)


@router.get("/admin/users", dependencies=[Depends(require_admin)])
async def get_admin_users(
    search: Optional[str] = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    policy: DegradationPolicy = Depends(get_policy),
):
    try:
        return await funcs.admin_users(policy, search=search, sort_by=sort_by)
    except EggconomyError as e:
        raise http_error(e)


@router.delete("/admin/users/{name}", dependencies=[Depends(require_admin)])
async def delete_user(name: str, policy: DegradationPolicy = Depends(get_policy)):
    """Delete an account from the fallback store."""
    try:
        await funcs.admin_delete_user(policy, name)
    except EggconomyError as e:
        raise http_error(e)
    return {"success": True}


@router.delete("/admin/listings/{listing_id}", dependencies=[Depends(require_admin)])
async def delete_listing(listing_id: str, policy: DegradationPolicy = Depends(get_policy)):
    """Delete a listing from the fallback store."""
    try:
        await funcs.admin_delete_listing(policy, listing_id)
    except EggconomyError as e:
        raise http_error(e)
    return {"success": True}


@router.post("/admin/clear", dependencies=[Depends(require_admin)])
async def clear_all_data(policy: DegradationPolicy = Depends(get_policy)):
    """Wipe every record held by the fallback store."""
    await funcs.admin_clear_all(policy)
    return {"success": True}
