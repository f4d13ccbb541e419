"""FastAPI dependencies: database session, caller identity and role checks."""

import logging
from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AuthenticationRequiredError,
    ExpiredTokenError,
    InvalidSignatureError,
    PermissionDeniedError,
)
from app.core.tokens import TokenClaims, verify_access
from app.db.session import get_db
from app.models.user import User, UserRole
from app.services.auth_service import AuthService
from app.services.otp_delivery import OtpDispatcher, get_otp_dispatcher

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]
OtpDispatcherDep = Annotated[OtpDispatcher, Depends(get_otp_dispatcher)]


async def get_current_claims(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> TokenClaims:
    """Verify the Bearer access token and return its claims."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationRequiredError()

    try:
        return verify_access(credentials.credentials)
    except ExpiredTokenError as exc:
        raise AuthenticationRequiredError("Access token expired") from exc
    except InvalidSignatureError as exc:
        logger.debug(f"Access token rejected: {exc}")
        raise AuthenticationRequiredError("Invalid access token") from exc


CurrentClaims = Annotated[TokenClaims, Depends(get_current_claims)]


async def get_current_user(claims: CurrentClaims, db: DbSession) -> User:
    return await AuthService.current_user(db, claims)


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*roles: UserRole):
    """Dependency factory: the caller's role must be one of ``roles``."""
    allowed = {role.value for role in roles}

    async def checker(claims: CurrentClaims) -> TokenClaims:
        if claims.role not in allowed:
            logger.warning(
                f"Role {claims.role!r} denied; requires one of {sorted(allowed)}"
            )
            raise PermissionDeniedError()
        return claims

    return checker


def ensure_self_or_admin(claims: TokenClaims, user_id: str) -> None:
    """Callers may act on their own account; admins on any."""
    if claims.user_id != user_id and claims.role != UserRole.ADMIN.value:
        raise PermissionDeniedError()
