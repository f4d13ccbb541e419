"""Pydantic schemas for API request/response validation."""

from app.schemas.user import (
    UserRegister,
    LoginRequest,
    OtpVerifyRequest,
    UserResponse,
    ApiResponse,
    RegisterResponse,
    LoginOtpResponse,
    LoginResponse,
    AccessTokenResponse,
    UserEnvelope,
)
from app.schemas.telegram import (
    TelegramLinkRequest,
    TelegramStatusResponse,
    TelegramUpdate,
)

__all__ = [
    "UserRegister",
    "LoginRequest",
    "OtpVerifyRequest",
    "UserResponse",
    "ApiResponse",
    "RegisterResponse",
    "LoginOtpResponse",
    "LoginResponse",
    "AccessTokenResponse",
    "UserEnvelope",
    "TelegramLinkRequest",
    "TelegramStatusResponse",
    "TelegramUpdate",
]
