"""User identity model."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String, Boolean, DateTime, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base

if TYPE_CHECKING:
    from app.models.refresh_token import RefreshToken


class UserRole(str, Enum):
    """Marketplace roles."""
    FARMER = "Farmer"
    BUYER = "Buyer"
    COOPERATIVE = "Cooperative"
    LOGISTICS_PROVIDER = "Logistics Provider"
    FINANCIAL_PARTNER = "Financial Partner"
    ADMIN = "Admin"


class AccountState(str, Enum):
    """Persisted part of the registration/login lifecycle."""
    REGISTERED_UNVERIFIED = "registered_unverified"
    TELEGRAM_LINK_PENDING = "telegram_link_pending"
    VERIFIED_IDLE = "verified_idle"


class User(Base):
    """Marketplace user, identified by a mobile number and an OTP secret."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    # Identity
    name: Mapped[str] = mapped_column(String(255))
    mobile_number: Mapped[str] = mapped_column(String(15), unique=True, index=True)
    recovery_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    role: Mapped[UserRole] = mapped_column(SQLEnum(UserRole), index=True)

    # Never returned by the API
    otp_secret: Mapped[str] = mapped_column(String(64))

    # Verification
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)

    # Telegram delivery channel
    is_telegram_linked: Mapped[bool] = mapped_column(Boolean, default=False)
    telegram_chat_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    verification_otp_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    refresh_tokens: Mapped[List["RefreshToken"]] = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    @property
    def account_state(self) -> AccountState:
        if self.is_verified:
            return AccountState.VERIFIED_IDLE
        if self.is_telegram_linked:
            return AccountState.TELEGRAM_LINK_PENDING
        return AccountState.REGISTERED_UNVERIFIED

    def __repr__(self) -> str:
        return f"<User(id={self.id}, mobile={self.mobile_number}, role={self.role})>"
