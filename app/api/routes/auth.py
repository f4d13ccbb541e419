"""Authentication endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request, Response, status

from app.core.config import get_settings
from app.core.dependencies import CurrentClaims, CurrentUser, DbSession, OtpDispatcherDep
from app.core.rate_limiter import get_client_ip, rate_limiter
from app.core.tokens import refresh_token_lifetime
from app.schemas.user import (
    AccessTokenData,
    AccessTokenResponse,
    ApiResponse,
    LoginData,
    LoginOtpData,
    LoginOtpResponse,
    LoginRequest,
    LoginResponse,
    OtpVerifyRequest,
    RegisterData,
    RegisterResponse,
    UserData,
    UserEnvelope,
    UserRegister,
    UserResponse,
)
from app.services.auth_service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter()


def check_rate_limit(limit_type: str, identifier: str) -> None:
    """Count the request and raise 429 if the limit is exceeded."""
    allowed, retry_after = rate_limiter.hit(limit_type, identifier)
    if not allowed:
        logger.warning(f"Rate limit exceeded for {limit_type}: {identifier[:20]}...")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many requests. Please try again in {retry_after} seconds.",
            headers={"Retry-After": str(retry_after)},
        )


# ─────────────────────────────────────────────
# Refresh Token Cookie
# ─────────────────────────────────────────────

def _presented_refresh_token(request: Request) -> Optional[str]:
    return request.cookies.get(get_settings().refresh_cookie_name) or None


def set_refresh_cookie(response: Response, refresh_token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=refresh_token,
        max_age=int(refresh_token_lifetime().total_seconds()),
        path=settings.refresh_cookie_path,
        httponly=True,
        secure=settings.secure_cookies,
        samesite=settings.cookie_samesite,
    )


def clear_refresh_cookie(response: Response) -> None:
    settings = get_settings()
    response.delete_cookie(
        key=settings.refresh_cookie_name,
        path=settings.refresh_cookie_path,
        httponly=True,
        secure=settings.secure_cookies,
        samesite=settings.cookie_samesite,
    )


# ─────────────────────────────────────────────
# Register
# ─────────────────────────────────────────────

@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserRegister, db: DbSession):
    """
    Register a new user.
    Returns the user and the Telegram bot link used to link the account.
    """
    result = await AuthService.register(
        db,
        name=user_data.name,
        mobile_number=user_data.mobile_number,
        role=user_data.role,
        recovery_email=user_data.recovery_email,
    )
    return RegisterResponse(
        message="User registered successfully. Please link your Telegram.",
        data=RegisterData(
            user=UserResponse.model_validate(result.user),
            telegram_bot_link=result.telegram_bot_link,
        ),
    )


@router.post("/verify-registration", response_model=UserEnvelope)
async def verify_registration(request: Request, body: OtpVerifyRequest, db: DbSession):
    """Complete registration with the OTP sent to the linked Telegram chat."""
    check_rate_limit("otp_verify_ip", get_client_ip(request))
    check_rate_limit("otp_verify_user", body.user_id)

    user = await AuthService.verify_registration(db, body.user_id, body.otp)
    rate_limiter.reset("otp_verify_user", body.user_id)

    return UserEnvelope(
        message="Account verified successfully",
        data=UserData(user=UserResponse.model_validate(user)),
    )


# ─────────────────────────────────────────────
# Login (OTP)
# ─────────────────────────────────────────────

@router.post("/login", response_model=LoginOtpResponse)
async def login(
    request: Request,
    body: LoginRequest,
    db: DbSession,
    dispatcher: OtpDispatcherDep,
):
    """
    Request a login OTP.
    Email identifiers receive it by email, mobile numbers over Telegram.
    """
    identifier = body.identifier.strip()
    check_rate_limit("otp_request_ip", get_client_ip(request))
    check_rate_limit("otp_request_identifier", identifier.lower())

    user_id, method = await AuthService.request_login_otp(db, identifier, dispatcher)

    destination = "email" if method.value == "email" else "mobile number"
    return LoginOtpResponse(
        message=f"OTP sent successfully to your {destination}",
        data=LoginOtpData(user_id=user_id, delivery_method=method.value),
    )


@router.post("/verify-otp", response_model=LoginResponse)
async def verify_otp(
    request: Request,
    response: Response,
    body: OtpVerifyRequest,
    db: DbSession,
):
    """
    Exchange a login OTP for an access token.
    The refresh token is set as an HttpOnly cookie.
    """
    check_rate_limit("otp_verify_ip", get_client_ip(request))
    check_rate_limit("otp_verify_user", body.user_id)

    result = await AuthService.verify_login_otp(
        db,
        body.user_id,
        body.otp,
        presented_refresh_token=_presented_refresh_token(request),
    )
    rate_limiter.reset("otp_verify_user", body.user_id)

    set_refresh_cookie(response, result.refresh_token)
    return LoginResponse(
        message="Login successful",
        data=LoginData(
            user=UserResponse.model_validate(result.user),
            access_token=result.access_token,
        ),
    )


# ─────────────────────────────────────────────
# Refresh Access Token
# ─────────────────────────────────────────────

@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh_token(request: Request, db: DbSession):
    """Issue a new access token for the refresh token cookie."""
    access_token = await AuthService.refresh(db, _presented_refresh_token(request))
    return AccessTokenResponse(
        message="Access token refreshed successfully",
        data=AccessTokenData(access_token=access_token),
    )


# ─────────────────────────────────────────────
# Logout
# ─────────────────────────────────────────────

@router.post("/logout", response_model=ApiResponse)
async def logout(request: Request, response: Response, db: DbSession):
    """Revoke the current session (if any) and clear the cookie. Always succeeds."""
    await AuthService.logout(db, _presented_refresh_token(request))
    clear_refresh_cookie(response)
    return ApiResponse(message="Logout successful")


@router.post("/logout-all", response_model=ApiResponse)
async def logout_all(response: Response, claims: CurrentClaims, db: DbSession):
    """Revoke every active session of the caller."""
    count = await AuthService.logout_all(db, claims)
    clear_refresh_cookie(response)
    return ApiResponse(
        message=f"Logged out from {count} session(s)",
        data={"revoked": count},
    )


# ─────────────────────────────────────────────
# Current User
# ─────────────────────────────────────────────

@router.get("/me", response_model=UserEnvelope)
async def get_current_user(current_user: CurrentUser):
    """Return authenticated user's info."""
    return UserEnvelope(data=UserData(user=UserResponse.model_validate(current_user)))


@router.post("/rotate-otp-secret", response_model=ApiResponse)
async def rotate_otp_secret(claims: CurrentClaims, db: DbSession):
    """Replace the caller's OTP secret. Outstanding codes stop working."""
    await AuthService.rotate_otp_secret(db, claims)
    return ApiResponse(message="OTP secret rotated")
