"""Audit trail writer."""

import json
import logging
from typing import Optional

from app.db.session import AsyncSessionLocal
from app.models.audit_log import AuditAction, AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    """
    Writes audit entries in a session of their own.

    Call after the primary operation has committed. A failing write is logged
    and dropped; it never reaches the caller.
    """

    session_factory = AsyncSessionLocal

    @classmethod
    async def record(
        cls,
        user_id: str,
        action: AuditAction,
        entity_type: str,
        entity_id: str,
        details: Optional[dict] = None,
    ) -> None:
        try:
            async with cls.session_factory() as session:
                session.add(
                    AuditLog(
                        user_id=user_id,
                        action=action,
                        entity_type=entity_type,
                        entity_id=entity_id,
                        details=json.dumps(details) if details else None,
                    )
                )
                await session.commit()
        except Exception as e:
            logger.error(f"Failed to create audit log ({action.value}): {e}")

    @classmethod
    async def log_login(cls, user_id: str, refresh_token_id: str) -> None:
        await cls.record(user_id, AuditAction.USER_LOGIN, "RefreshToken", refresh_token_id)

    @classmethod
    async def log_logout(cls, user_id: str, refresh_token_id: str) -> None:
        await cls.record(user_id, AuditAction.USER_LOGOUT, "RefreshToken", refresh_token_id)

    @classmethod
    async def log_tokens_revoked(cls, user_id: str, count: int, reason: str) -> None:
        await cls.record(
            user_id,
            AuditAction.TOKEN_REVOKED,
            "User",
            user_id,
            details={"count": count, "reason": reason},
        )
