"""Authentication service: OTP login, Telegram linking and refresh token lifecycle."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import otp as otp_engine
from app.core import tokens
from app.core.config import get_settings
from app.core.exceptions import (
    AccountNotVerifiedError,
    AlreadyVerifiedError,
    ChannelNotLinkedError,
    DuplicateUserError,
    ExpiredTokenError,
    InvalidIdentifierFormatError,
    InvalidOrExpiredOtpError,
    InvalidOrExpiredTokenError,
    InvalidSignatureError,
    MissingFieldsError,
    MissingRefreshTokenError,
    TokenNotFoundOrExpiredError,
    UserNotFoundError,
)
from app.core.tokens import TokenClaims
from app.models.audit_log import AuditAction
from app.models.user import User, UserRole
from app.services.audit_service import AuditService
from app.services.otp_delivery import DeliveryMethod, OtpDispatcher
from app.services.refresh_token_store import RefreshTokenStore

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")
MOBILE_PATTERN = re.compile(r"^[6-9]\d{9}$")


class IdentifierKind(str, Enum):
    EMAIL = "email"
    MOBILE = "mobile"


def classify_identifier(identifier: str) -> IdentifierKind:
    """Email if it looks like one, Indian mobile number if it matches, else error."""
    if EMAIL_PATTERN.match(identifier):
        return IdentifierKind.EMAIL
    if MOBILE_PATTERN.match(identifier):
        return IdentifierKind.MOBILE
    raise InvalidIdentifierFormatError()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _short(user_id: str) -> str:
    return f"{user_id[:8]}..."


@dataclass
class RegistrationResult:
    user: User
    telegram_bot_link: str


@dataclass
class LoginResult:
    user: User
    access_token: str
    refresh_token: str
    revoked_sessions: int = 0


class AuthService:
    """Registration, verification, login and session management."""

    # ─── User Lookup ─────────────────────────────
    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user_by_mobile(db: AsyncSession, mobile_number: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.mobile_number == mobile_number))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
        # recovery_email is not unique; the earliest registration wins
        result = await db.execute(
            select(User)
            .where(User.recovery_email == email.lower())
            .order_by(User.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _require_user(db: AsyncSession, user_id: str) -> User:
        user = await AuthService.get_user_by_id(db, user_id)
        if not user:
            raise UserNotFoundError()
        return user

    # ─── Registration ───────────────────────────
    @staticmethod
    async def register(
        db: AsyncSession,
        name: str,
        mobile_number: str,
        role: UserRole,
        recovery_email: Optional[str] = None,
    ) -> RegistrationResult:
        settings = get_settings()
        name = (name or "").strip()
        mobile_number = (mobile_number or "").strip()
        email = recovery_email.strip().lower() if recovery_email else None

        if not name or not mobile_number or not role:
            raise MissingFieldsError("Name, mobile number and role are required")
        if not MOBILE_PATTERN.match(mobile_number):
            raise InvalidIdentifierFormatError("Please provide a valid mobile number")

        conditions = [User.mobile_number == mobile_number]
        if email and settings.duplicate_user_policy == "mobile_or_email":
            conditions.append(User.recovery_email == email)
        existing = await db.execute(select(User.id).where(or_(*conditions)).limit(1))
        if existing.scalar_one_or_none():
            raise DuplicateUserError()

        user = User(
            name=name,
            mobile_number=mobile_number,
            recovery_email=email,
            role=role,
            otp_secret=otp_engine.generate_otp_secret(),
            is_verified=False,
            is_telegram_linked=False,
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError as exc:
            # lost a race on the unique mobile number
            await db.rollback()
            raise DuplicateUserError() from exc
        await db.refresh(user)

        logger.info(f"User registered: {_short(user.id)} ({role.value})")
        await AuditService.record(user.id, AuditAction.USER_REGISTERED, "User", user.id)

        return RegistrationResult(
            user=user,
            telegram_bot_link=settings.telegram_bot_link(user.id),
        )

    # ─── Telegram Channel ───────────────────────
    @staticmethod
    async def link_telegram(
        db: AsyncSession,
        user_id: str,
        chat_id: str,
        dispatcher: OtpDispatcher,
    ) -> User:
        """
        Attach a Telegram chat to the user.

        An unverified user immediately receives a verification code in the
        chat. The link is committed before delivery, so a DeliveryFailedError
        leaves the user linked; the code can be re-requested via /start.
        """
        if not user_id or not chat_id:
            raise MissingFieldsError("User ID and chat ID are required")

        user = await AuthService._require_user(db, user_id)
        user.telegram_chat_id = str(chat_id)
        user.is_telegram_linked = True
        send_code = not user.is_verified
        if send_code:
            user.verification_otp_sent_at = _now()
        await db.commit()
        await db.refresh(user)

        logger.info(f"Telegram linked for user {_short(user.id)}")
        await AuditService.record(
            user.id,
            AuditAction.TELEGRAM_LINKED,
            "User",
            user.id,
            details={"chat_id": user.telegram_chat_id},
        )

        if send_code:
            code = otp_engine.generate(user.otp_secret)
            await dispatcher.dispatch(
                DeliveryMethod.TELEGRAM,
                user.telegram_chat_id,
                code,
                verification=True,
            )
        else:
            await dispatcher.notify_telegram(
                user.telegram_chat_id,
                "✅ Telegram linked successfully!\n\n"
                f"Your account ({user.mobile_number}) is now connected. You'll receive OTPs here.",
            )
        return user

    @staticmethod
    async def unlink_telegram(db: AsyncSession, user_id: str) -> User:
        user = await AuthService._require_user(db, user_id)
        user.telegram_chat_id = None
        user.is_telegram_linked = False
        await db.commit()
        await db.refresh(user)

        logger.info(f"Telegram unlinked for user {_short(user.id)}")
        await AuditService.record(user.id, AuditAction.TELEGRAM_UNLINKED, "User", user.id)
        return user

    @staticmethod
    async def telegram_status(db: AsyncSession, user_id: str) -> dict:
        user = await AuthService._require_user(db, user_id)
        return {
            "is_telegram_linked": user.is_telegram_linked,
            "telegram_chat_id": user.telegram_chat_id,
            "telegram_bot_link": get_settings().telegram_bot_link(user.id),
        }

    # ─── Registration Verification ──────────────
    @staticmethod
    async def verify_registration(db: AsyncSession, user_id: str, otp: str) -> User:
        if not user_id or not otp:
            raise MissingFieldsError("User ID and OTP are required")

        user = await AuthService._require_user(db, user_id)
        if user.is_verified:
            raise AlreadyVerifiedError()
        if not user.is_telegram_linked:
            raise ChannelNotLinkedError(
                data={"telegram_bot_link": get_settings().telegram_bot_link(user.id)}
            )
        if not otp_engine.validate(otp, user.otp_secret):
            logger.warning(f"Registration OTP rejected for user {_short(user.id)}")
            raise InvalidOrExpiredOtpError()

        user.is_verified = True
        await db.commit()
        await db.refresh(user)

        logger.info(f"User verified: {_short(user.id)}")
        await AuditService.record(user.id, AuditAction.USER_VERIFIED, "User", user.id)
        return user

    # ─── Login: request code ────────────────────
    @staticmethod
    async def request_login_otp(
        db: AsyncSession,
        identifier: str,
        dispatcher: OtpDispatcher,
    ) -> Tuple[str, DeliveryMethod]:
        """
        Send a login code over the channel implied by ``identifier``.

        Email identifiers match the recovery email and deliver by email;
        mobile numbers deliver over the configured mobile channel.
        """
        settings = get_settings()
        identifier = (identifier or "").strip()
        if not identifier:
            raise MissingFieldsError("Email or mobile number is required")

        kind = classify_identifier(identifier)
        if kind == IdentifierKind.EMAIL:
            user = await AuthService.get_user_by_email(db, identifier)
        else:
            user = await AuthService.get_user_by_mobile(db, identifier)
        if not user:
            raise UserNotFoundError()

        if settings.require_verified_for_login and not user.is_verified:
            raise AccountNotVerifiedError(
                data={"telegram_bot_link": settings.telegram_bot_link(user.id)}
            )

        if kind == IdentifierKind.EMAIL:
            method, destination = DeliveryMethod.EMAIL, user.recovery_email
        elif settings.mobile_otp_channel == "sms":
            method, destination = DeliveryMethod.SMS, user.mobile_number
        else:
            method, destination = DeliveryMethod.TELEGRAM, user.telegram_chat_id

        channel_missing = not user.is_telegram_linked or not user.telegram_chat_id
        needs_telegram = method == DeliveryMethod.TELEGRAM or settings.require_telegram_link_for_login
        if needs_telegram and channel_missing:
            raise ChannelNotLinkedError(
                data={"telegram_bot_link": settings.telegram_bot_link(user.id)}
            )

        code = otp_engine.generate(user.otp_secret)
        await dispatcher.dispatch(method, destination, code)

        logger.info(f"Login OTP sent to user {_short(user.id)} via {method.value}")
        return user.id, method

    # ─── Login: verify code ─────────────────────
    @staticmethod
    async def verify_login_otp(
        db: AsyncSession,
        user_id: str,
        otp: str,
        presented_refresh_token: Optional[str] = None,
    ) -> LoginResult:
        """
        Exchange a valid code for an access token and a stored refresh token.

        A refresh token presented alongside (a stale session on this client)
        revokes every active session of the user before the new one is stored.
        """
        if not user_id or not otp:
            raise MissingFieldsError("User ID and OTP are required")

        user = await AuthService._require_user(db, user_id)
        if not otp_engine.validate(otp, user.otp_secret):
            logger.warning(f"Login OTP rejected for user {_short(user.id)}")
            raise InvalidOrExpiredOtpError()

        revoked = 0
        if presented_refresh_token:
            revoked = await RefreshTokenStore.revoke_all_active_for_user(db, user.id)

        role = user.role.value
        access_token = tokens.issue_access(user.id, user.mobile_number, role)
        refresh_token = tokens.issue_refresh(user.id, user.mobile_number, role)
        record = await RefreshTokenStore.persist(
            db,
            user.id,
            refresh_token,
            tokens.compute_refresh_expiry(),
        )
        user.last_login = _now()
        await db.commit()
        await db.refresh(user)

        logger.info(f"User logged in: {_short(user.id)}")
        if revoked:
            await AuditService.log_tokens_revoked(user.id, revoked, "new_login")
        await AuditService.log_login(user.id, record.id)

        return LoginResult(
            user=user,
            access_token=access_token,
            refresh_token=refresh_token,
            revoked_sessions=revoked,
        )

    # ─── Refresh Access Token ───────────────────
    @staticmethod
    async def refresh(db: AsyncSession, raw_refresh_token: Optional[str]) -> str:
        """
        Mint a new access token for a live refresh token.

        The signature/claim check runs first and decides claim expiry; the
        store then decides revocation and record expiry. The refresh token
        itself is not rotated.
        """
        if not raw_refresh_token:
            raise MissingRefreshTokenError()

        try:
            claims = tokens.verify_refresh(raw_refresh_token)
        except (ExpiredTokenError, InvalidSignatureError) as exc:
            logger.info(f"Refresh rejected: {exc}")
            raise InvalidOrExpiredTokenError() from exc

        record = await RefreshTokenStore.verify_presented(db, raw_refresh_token)
        if not record:
            raise TokenNotFoundOrExpiredError()

        user = await AuthService.get_user_by_id(db, claims.user_id)
        if not user:
            await RefreshTokenStore.revoke(db, record.id)
            await db.commit()
            logger.warning(f"Refresh token for missing user {_short(claims.user_id)} revoked")
            raise UserNotFoundError(status_code=401)

        return tokens.issue_access(user.id, user.mobile_number, user.role.value)

    # ─── Logout ─────────────────────────────────
    @staticmethod
    async def logout(db: AsyncSession, raw_refresh_token: Optional[str]) -> bool:
        """Revoke the presented session if it is still active. Never fails for the caller."""
        if not raw_refresh_token:
            return False

        record = await RefreshTokenStore.verify_presented(db, raw_refresh_token)
        if not record:
            return False

        await RefreshTokenStore.revoke(db, record.id)
        await db.commit()

        logger.info(f"User logged out: {_short(record.user_id)}")
        await AuditService.log_logout(record.user_id, record.id)
        return True

    @staticmethod
    async def logout_all(db: AsyncSession, claims: TokenClaims) -> int:
        count = await RefreshTokenStore.revoke_all_active_for_user(db, claims.user_id)
        await db.commit()

        if count:
            await AuditService.log_tokens_revoked(claims.user_id, count, "logout_all")
        return count

    # ─── Account ────────────────────────────────
    @staticmethod
    async def rotate_otp_secret(db: AsyncSession, claims: TokenClaims) -> User:
        """Replace the user's OTP secret; codes derived from the old one stop validating."""
        user = await AuthService._require_user(db, claims.user_id)
        user.otp_secret = otp_engine.generate_otp_secret()
        await db.commit()
        await db.refresh(user)

        logger.info(f"OTP secret rotated for user {_short(user.id)}")
        await AuditService.record(user.id, AuditAction.OTP_SECRET_ROTATED, "User", user.id)
        return user

    @staticmethod
    async def current_user(db: AsyncSession, claims: TokenClaims) -> User:
        user = await AuthService.get_user_by_id(db, claims.user_id)
        if not user:
            raise UserNotFoundError(status_code=401)
        return user
