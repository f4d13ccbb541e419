"""Periodic cleanup of expired refresh tokens and idle rate-limit keys."""

import asyncio
import logging

from app.core.rate_limiter import rate_limiter
from app.db.session import AsyncSessionLocal
from app.services.refresh_token_store import RefreshTokenStore

logger = logging.getLogger(__name__)


async def run_housekeeping(session_factory=AsyncSessionLocal) -> dict:
    """One cleanup pass. Returns what was removed."""
    async with session_factory() as session:
        purged = await RefreshTokenStore.purge_expired(session)
        await session.commit()

    pruned = rate_limiter.cleanup_all()
    return {"refresh_tokens": purged, "rate_limit_keys": pruned}


async def housekeeping_loop(interval_seconds: int) -> None:
    """Run ``run_housekeeping`` every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = await run_housekeeping()
            logger.debug(f"Housekeeping pass: {removed}")
        except Exception as e:
            logger.error(f"Housekeeping pass failed: {e}")
