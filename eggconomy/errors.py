"""
Service-level errors.

Each error carries the HTTP status the router answers with and a message that
is safe to show to users. `ServiceFailure` additionally keeps a developer
facing `details` string.
"""

from typing import Optional


class EggconomyError(Exception):
    status_code = 500
    default_detail = "Something went wrong"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationFailure(EggconomyError):
    status_code = 400
    default_detail = "Invalid request"


class AuthenticationFailed(EggconomyError):
    status_code = 401
    default_detail = "Invalid name or password"


class PermissionDenied(EggconomyError):
    status_code = 403
    default_detail = "You are not allowed to do that"


class NotFound(EggconomyError):
    status_code = 404
    default_detail = "Not found"


class ConflictError(EggconomyError):
    status_code = 409
    default_detail = "Record already exists"


class AccountLocked(EggconomyError):
    status_code = 423
    default_detail = "Account is temporarily locked"


class RateLimited(EggconomyError):
    status_code = 429
    default_detail = "Too many requests"


class ServiceFailure(EggconomyError):
    status_code = 500
    default_detail = "Something went wrong"

    def __init__(self, detail: Optional[str] = None, details: Optional[str] = None):
        super().__init__(detail)
        self.details = details
