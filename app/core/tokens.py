"""Access/refresh token issuing and verification (JWT, python-jose)."""

import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt

from app.core.config import get_settings
from app.core.exceptions import ConfigError, ExpiredTokenError, InvalidSignatureError

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

_DURATION_RE = re.compile(r"^(\d+)([smhd])$")
_UNITS = {
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
}


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried by a verified token."""

    user_id: str
    identity: str
    role: str


def parse_duration(expr: str) -> timedelta:
    """Parse ``<integer><s|m|h|d>`` (e.g. ``"7d"``) into a timedelta."""
    match = _DURATION_RE.match((expr or "").strip())
    if not match:
        raise ConfigError(f"Invalid duration expression: {expr!r}")
    value, unit = match.groups()
    return timedelta(**{_UNITS[unit]: int(value)})


def access_token_lifetime() -> timedelta:
    return parse_duration(get_settings().jwt_access_expiry)


def refresh_token_lifetime() -> timedelta:
    return parse_duration(get_settings().jwt_refresh_expiry)


def compute_refresh_expiry(now: Optional[datetime] = None) -> datetime:
    """Absolute expiry instant for a refresh token issued at ``now``."""
    return (now or datetime.now(timezone.utc)) + refresh_token_lifetime()


def _encode(
    claims: TokenClaims,
    token_type: str,
    secret: str,
    lifetime: timedelta,
    now: Optional[datetime] = None,
) -> str:
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": claims.user_id,
        "identity": claims.identity,
        "role": claims.role,
        "type": token_type,
        "jti": str(uuid.uuid4()),
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + lifetime).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=get_settings().jwt_algorithm)


def _decode(token: str, token_type: str, secret: str) -> TokenClaims:
    try:
        payload = jwt.decode(token, secret, algorithms=[get_settings().jwt_algorithm])
    except ExpiredSignatureError as exc:
        raise ExpiredTokenError("Token expired") from exc
    except JWTError as exc:
        raise InvalidSignatureError(f"Invalid token: {exc}") from exc

    if payload.get("type") != token_type:
        raise InvalidSignatureError("Wrong token type")

    user_id = payload.get("sub")
    if not user_id:
        raise InvalidSignatureError("Token has no subject")

    return TokenClaims(
        user_id=user_id,
        identity=payload.get("identity", ""),
        role=payload.get("role", ""),
    )


def issue_access(user_id: str, identity: str, role: str, now: Optional[datetime] = None) -> str:
    settings = get_settings()
    return _encode(
        TokenClaims(user_id, identity, role),
        ACCESS_TOKEN_TYPE,
        settings.jwt_access_secret,
        access_token_lifetime(),
        now,
    )


def issue_refresh(user_id: str, identity: str, role: str, now: Optional[datetime] = None) -> str:
    settings = get_settings()
    return _encode(
        TokenClaims(user_id, identity, role),
        REFRESH_TOKEN_TYPE,
        settings.jwt_refresh_secret,
        refresh_token_lifetime(),
        now,
    )


def verify_access(token: str) -> TokenClaims:
    return _decode(token, ACCESS_TOKEN_TYPE, get_settings().jwt_access_secret)


def verify_refresh(token: str) -> TokenClaims:
    return _decode(token, REFRESH_TOKEN_TYPE, get_settings().jwt_refresh_secret)
