"""
Refresh token store.

Refresh tokens are self-contained signed claims; this store keeps a hashed
record of each one so it can be revoked before its signature expires.
"""

import hashlib
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.refresh_token import RefreshToken

logger = logging.getLogger(__name__)


def hash_token(raw_token: str) -> str:
    """One-way hash used as the lookup key; the raw token is never stored."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RefreshTokenStore:
    """Persistence operations for refresh token records."""

    @staticmethod
    async def persist(
        db: AsyncSession,
        user_id: str,
        raw_token: str,
        expires_at: datetime,
    ) -> RefreshToken:
        """
        Insert a record for ``raw_token``.

        The unique constraint on ``token_hash`` rejects re-issuing an identical
        token (IntegrityError on flush).
        """
        record = RefreshToken(
            user_id=user_id,
            token_hash=hash_token(raw_token),
            expires_at=expires_at,
        )
        db.add(record)
        await db.flush()
        logger.debug(f"Refresh token stored for user {user_id[:8]}...")
        return record

    @staticmethod
    async def verify_presented(db: AsyncSession, raw_token: str) -> Optional[RefreshToken]:
        """Return the active record matching ``raw_token``, or None."""
        result = await db.execute(
            select(RefreshToken).where(
                RefreshToken.token_hash == hash_token(raw_token),
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > _now(),
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def revoke(db: AsyncSession, record_id: str) -> None:
        """Mark a record revoked. Revoking twice keeps the first timestamp."""
        await db.execute(
            update(RefreshToken)
            .where(RefreshToken.id == record_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=_now())
            .execution_options(synchronize_session="fetch")
        )

    @staticmethod
    async def revoke_all_active_for_user(db: AsyncSession, user_id: str) -> int:
        """Revoke every unrevoked record of ``user_id``; returns the count."""
        result = await db.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=_now())
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount:
            logger.info(f"Revoked {result.rowcount} refresh token(s) for user {user_id[:8]}...")
        return result.rowcount

    @staticmethod
    async def count_active_for_user(db: AsyncSession, user_id: str) -> int:
        """Number of unrevoked, unexpired records of ``user_id``."""
        result = await db.execute(
            select(func.count())
            .select_from(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > _now(),
            )
        )
        return result.scalar_one()

    @staticmethod
    async def purge_expired(db: AsyncSession, older_than: Optional[datetime] = None) -> int:
        """Hard-delete records whose expiry has passed. Run by the housekeeping task."""
        cutoff = older_than or _now()
        result = await db.execute(
            delete(RefreshToken).where(RefreshToken.expires_at < cutoff)
        )
        count = result.rowcount
        if count > 0:
            logger.info(f"Purged {count} expired refresh tokens")
        return count
