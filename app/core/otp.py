"""
Time-windowed one-time codes.

Codes are TOTP values (HMAC-SHA256, 6 digits) derived from the per-user
secret and the current time bucket. Nothing is persisted: verification
recomputes the expected code for the current bucket and the buckets behind it
that fall inside the tolerance window, because Telegram/e-mail delivery and
user entry take a while.
"""

import hashlib
import math
from datetime import datetime, timezone
from typing import Optional

import pyotp
from pyotp.utils import strings_equal

from app.core.config import get_settings
from app.core.exceptions import OtpEngineError

OTP_DIGITS = 6


def generate_otp_secret() -> str:
    """Generate a new random base32 OTP secret for a user."""
    return pyotp.random_base32(length=32)


def _totp(secret: str, step_seconds: int) -> pyotp.TOTP:
    if not secret or not isinstance(secret, str):
        raise OtpEngineError("OTP secret is missing")
    return pyotp.TOTP(
        secret,
        digits=OTP_DIGITS,
        digest=hashlib.sha256,
        interval=step_seconds,
    )


def _at(totp: pyotp.TOTP, when: datetime, offset: int = 0) -> str:
    try:
        return totp.at(when, counter_offset=offset)
    except ValueError as exc:
        # base32 decoding of a malformed secret
        raise OtpEngineError(f"Invalid OTP secret: {exc}") from exc


def generate(
    secret: str,
    at: Optional[datetime] = None,
    step_seconds: Optional[int] = None,
) -> str:
    """
    Derive the code for ``secret`` in the time bucket containing ``at``.

    Two calls inside the same bucket return the same code.
    """
    step = step_seconds or get_settings().otp_step_seconds
    when = at or datetime.now(timezone.utc)
    return _at(_totp(secret, step), when)


def validate(
    code: str,
    secret: str,
    window_minutes: Optional[int] = None,
    at: Optional[datetime] = None,
    step_seconds: Optional[int] = None,
    look_ahead: Optional[int] = None,
) -> bool:
    """
    Check ``code`` against the current bucket and the buckets covering the
    last ``window_minutes``. ``look_ahead`` adds buckets in the future to
    absorb clock skew. A mismatch returns False.
    """
    settings = get_settings()
    step = step_seconds or settings.otp_step_seconds
    window = settings.otp_window_minutes if window_minutes is None else window_minutes
    ahead = settings.otp_look_ahead_steps if look_ahead is None else look_ahead

    totp = _totp(secret, step)
    if not isinstance(code, str):
        return False
    code = code.strip()
    if len(code) != OTP_DIGITS or not code.isdigit():
        return False

    when = at or datetime.now(timezone.utc)
    steps_back = math.ceil(window * 60 / step)

    for offset in range(-steps_back, ahead + 1):
        if strings_equal(code, _at(totp, when, offset)):
            return True
    return False
