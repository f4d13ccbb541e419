"""Domain exceptions for the authentication flow.

Every ``AuthError`` maps to a typed 4xx/5xx response through the handler
registered in ``main.py``. Anything that is not an ``AuthError`` is treated as
an unexpected failure and surfaces as a sanitized 500.
"""

from typing import Any, Optional

from fastapi import status


class AuthError(Exception):
    """Base class for errors reported to the caller as typed responses."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "AUTH_ERROR"
    message: str = "Authentication error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        status_code: Optional[int] = None,
        data: Optional[dict[str, Any]] = None,
    ):
        self.message = message or self.message
        if status_code is not None:
            self.status_code = status_code
        self.data = data
        super().__init__(self.message)


# ─── Input errors ─────────────────────────────

class MissingFieldsError(AuthError):
    code = "MISSING_FIELDS"
    message = "Required fields are missing"


class InvalidIdentifierFormatError(AuthError):
    code = "INVALID_IDENTIFIER_FORMAT"
    message = "Invalid email or mobile number format"


# ─── Not found / conflicts ────────────────────

class DuplicateUserError(AuthError):
    code = "DUPLICATE_USER"
    message = "User with this phone or email already exists"


class UserNotFoundError(AuthError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "USER_NOT_FOUND"
    message = "User not found"


class AccountNotVerifiedError(AuthError):
    code = "ACCOUNT_NOT_VERIFIED"
    message = "Account not verified. Please complete registration first."


class ChannelNotLinkedError(AuthError):
    code = "TELEGRAM_NOT_LINKED"
    message = "Telegram not linked. Please link your Telegram first."


class AlreadyVerifiedError(AuthError):
    code = "ALREADY_VERIFIED"
    message = "Account is already verified"


# ─── Verification failures ────────────────────

class InvalidOrExpiredOtpError(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "INVALID_OTP"
    message = "Invalid or expired OTP"


class MissingRefreshTokenError(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "MISSING_REFRESH_TOKEN"
    message = "Refresh token not found"


class InvalidOrExpiredTokenError(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "INVALID_REFRESH_TOKEN"
    message = "Invalid or expired refresh token"


class TokenNotFoundOrExpiredError(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "REFRESH_TOKEN_NOT_FOUND"
    message = "Refresh token not found or expired"


class AuthenticationRequiredError(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AUTHENTICATION_REQUIRED"
    message = "Authentication required. Please provide a valid token."


class PermissionDeniedError(AuthError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "PERMISSION_DENIED"
    message = "Access denied. Insufficient permissions."


# ─── Downstream failures ──────────────────────

class DeliveryFailedError(AuthError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "DELIVERY_FAILED"
    message = "Failed to send OTP"


# ─── Non-HTTP errors ──────────────────────────

class ConfigError(Exception):
    """Raised when a configured value cannot be interpreted."""


class OtpEngineError(Exception):
    """Raised when an OTP cannot be derived from the given secret."""


class ExpiredTokenError(Exception):
    """Signed token is well-formed but past its expiry."""


class InvalidSignatureError(Exception):
    """Signed token failed signature, structure or type checks."""
