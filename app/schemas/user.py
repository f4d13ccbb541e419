"""User and authentication schemas for API validation."""

from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field

from app.models.user import AccountState, UserRole


class UserRegister(BaseModel):
    """Schema for user registration."""
    name: str = Field(min_length=1, max_length=255)
    mobile_number: str = Field(
        min_length=10,
        max_length=15,
        validation_alias=AliasChoices("mobile_number", "contact_identifier"),
    )
    role: UserRole
    recovery_email: Optional[EmailStr] = None


class LoginRequest(BaseModel):
    """Schema for requesting a login OTP (email or mobile number)."""
    identifier: str = Field(
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("identifier", "contact_identifier"),
    )


class OtpVerifyRequest(BaseModel):
    """Schema for submitting an OTP (registration or login)."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(min_length=1, validation_alias=AliasChoices("userId", "user_id"))
    otp: str = Field(min_length=1, max_length=10)


class UserResponse(BaseModel):
    """Schema for user response. The OTP secret is never part of it."""
    id: str
    name: str
    mobile_number: str
    recovery_email: Optional[str] = None
    role: UserRole
    is_verified: bool
    is_telegram_linked: bool
    account_state: AccountState
    created_at: datetime
    updated_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


# ─── Response envelopes ───────────────────────

class ApiResponse(BaseModel):
    """Standard ``{success, message, data}`` envelope."""
    success: bool = True
    message: Optional[str] = None
    data: Optional[Any] = None


class RegisterData(BaseModel):
    user: UserResponse
    telegram_bot_link: str


class LoginOtpData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    delivery_method: str = Field(alias="deliveryMethod")


class LoginData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user: UserResponse
    access_token: str = Field(alias="accessToken")


class AccessTokenData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(alias="accessToken")


class UserData(BaseModel):
    user: UserResponse


class RegisterResponse(ApiResponse):
    data: RegisterData


class LoginOtpResponse(ApiResponse):
    data: LoginOtpData


class LoginResponse(ApiResponse):
    data: LoginData


class AccessTokenResponse(ApiResponse):
    data: AccessTokenData


class UserEnvelope(ApiResponse):
    data: UserData
