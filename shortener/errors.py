"""Service-layer exception taxonomy.

Every error raised by a service carries the HTTP status it maps to, so the
boundary translates it 1:1 without inspecting messages::

    ServiceError
    ├─ ValidationError (400)      InvalidUrl, InvalidCode, WeakPassword, LinkNotOwned
    ├─ NotFoundError (404)        LinkNotFound, LinkExpired, UserNotFound
    ├─ ConflictError (409)        CodeTaken, UsernameTaken, EmailTaken
    ├─ AuthError (401)            UnknownUser, UserDisabled, WrongPassword, InvalidSession
    ├─ CapacityExhausted (503)
    └─ StoreUnavailable (503, retriable)
"""

from shortener.enums import SessionInvalidReason

__all__ = [
    "ServiceError",
    "ValidationError",
    "InvalidUrl",
    "InvalidCode",
    "WeakPassword",
    "LinkNotOwned",
    "NotFoundError",
    "LinkNotFound",
    "LinkExpired",
    "UserNotFound",
    "ConflictError",
    "CodeTaken",
    "UsernameTaken",
    "EmailTaken",
    "AuthError",
    "UnknownUser",
    "UserDisabled",
    "WrongPassword",
    "InvalidSession",
    "CapacityExhausted",
    "StoreUnavailable",
]


class ServiceError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    status_code = 400
    default_message = "Invalid request"


class InvalidUrl(ValidationError):
    default_message = "Invalid URL"


class InvalidCode(ValidationError):
    default_message = "Invalid code. Use 3-20 characters: letters, numbers, _ or -"


class WeakPassword(ValidationError):
    default_message = "Password is too short"


class LinkNotOwned(ValidationError):
    default_message = "Link not found or not owned by caller"


class NotFoundError(ServiceError):
    status_code = 404
    default_message = "Not found"


class LinkNotFound(NotFoundError):
    default_message = "Link not found"


class LinkExpired(NotFoundError):
    default_message = "Link expired"


class UserNotFound(NotFoundError):
    default_message = "User not found"


class ConflictError(ServiceError):
    status_code = 409
    default_message = "Conflict"


class CodeTaken(ConflictError):
    def __init__(self, short_code: str) -> None:
        self.short_code = short_code
        super().__init__(f"Code '{short_code}' is already taken")


class UsernameTaken(ConflictError):
    default_message = "Username is already taken"


class EmailTaken(ConflictError):
    default_message = "Email is already taken"


class AuthError(ServiceError):
    status_code = 401
    default_message = "Authentication failed"


class UnknownUser(AuthError):
    default_message = "User not found"


class UserDisabled(AuthError):
    default_message = "User is disabled"


class WrongPassword(AuthError):
    default_message = "Wrong password"


class InvalidSession(AuthError):
    def __init__(self, reason: SessionInvalidReason) -> None:
        self.reason = reason
        super().__init__(f"Invalid session: {reason.value}")


class CapacityExhausted(ServiceError):
    status_code = 503
    default_message = "Could not allocate a unique short code"


class StoreUnavailable(ServiceError):
    status_code = 503
    default_message = "Database busy, retry later"
