"""
Tests for the refresh token store.

Run with: pytest tests/test_refresh_token_store.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.core import tokens
from app.models.refresh_token import RefreshToken
from app.services.housekeeping import run_housekeeping
from app.services.refresh_token_store import RefreshTokenStore, hash_token


def _future(**delta):
    return datetime.now(timezone.utc) + timedelta(**delta)


async def _revoked_at(db, record_id):
    result = await db.execute(select(RefreshToken.revoked_at).where(RefreshToken.id == record_id))
    return result.scalar_one()


class TestPersist:

    @pytest.mark.asyncio
    async def test_stores_hash_not_raw_token(self, db_session, make_user):
        user = await make_user()
        raw = tokens.issue_refresh(user.id, user.mobile_number, user.role.value)

        record = await RefreshTokenStore.persist(db_session, user.id, raw, _future(days=7))
        await db_session.commit()

        assert record.token_hash == hash_token(raw)
        assert record.token_hash != raw
        assert len(record.token_hash) == 64

    @pytest.mark.asyncio
    async def test_duplicate_token_rejected(self, db_session, make_user):
        user = await make_user()
        raw = tokens.issue_refresh(user.id, user.mobile_number, user.role.value)
        await RefreshTokenStore.persist(db_session, user.id, raw, _future(days=7))

        with pytest.raises(IntegrityError):
            await RefreshTokenStore.persist(db_session, user.id, raw, _future(days=7))
        await db_session.rollback()


class TestVerifyPresented:

    @pytest.mark.asyncio
    async def test_active_record_found(self, db_session, make_user):
        user = await make_user()
        raw = tokens.issue_refresh(user.id, user.mobile_number, user.role.value)
        record = await RefreshTokenStore.persist(db_session, user.id, raw, _future(days=7))
        await db_session.commit()

        found = await RefreshTokenStore.verify_presented(db_session, raw)
        assert found is not None
        assert found.id == record.id

    @pytest.mark.asyncio
    async def test_unknown_token(self, db_session):
        assert await RefreshTokenStore.verify_presented(db_session, "never-issued") is None

    @pytest.mark.asyncio
    async def test_revoked_record_not_found(self, db_session, make_user):
        user = await make_user()
        raw = tokens.issue_refresh(user.id, user.mobile_number, user.role.value)
        record = await RefreshTokenStore.persist(db_session, user.id, raw, _future(days=7))
        await RefreshTokenStore.revoke(db_session, record.id)
        await db_session.commit()

        assert await RefreshTokenStore.verify_presented(db_session, raw) is None

    @pytest.mark.asyncio
    async def test_expired_record_not_found(self, db_session, make_user):
        user = await make_user()
        raw = tokens.issue_refresh(user.id, user.mobile_number, user.role.value)
        await RefreshTokenStore.persist(db_session, user.id, raw, _future(minutes=-1))
        await db_session.commit()

        assert await RefreshTokenStore.verify_presented(db_session, raw) is None


class TestRevoke:

    @pytest.mark.asyncio
    async def test_revoke_is_idempotent(self, db_session, make_user):
        user = await make_user()
        raw = tokens.issue_refresh(user.id, user.mobile_number, user.role.value)
        record = await RefreshTokenStore.persist(db_session, user.id, raw, _future(days=7))
        await db_session.commit()

        await RefreshTokenStore.revoke(db_session, record.id)
        await db_session.commit()
        first = await _revoked_at(db_session, record.id)

        await RefreshTokenStore.revoke(db_session, record.id)
        await db_session.commit()

        assert first is not None
        assert await _revoked_at(db_session, record.id) == first

    @pytest.mark.asyncio
    async def test_revoke_all_only_touches_one_user(self, db_session, make_user):
        alice = await make_user()
        bob = await make_user()
        for user in (alice, alice, bob):
            raw = tokens.issue_refresh(user.id, user.mobile_number, user.role.value)
            await RefreshTokenStore.persist(db_session, user.id, raw, _future(days=7))
        await db_session.commit()

        revoked = await RefreshTokenStore.revoke_all_active_for_user(db_session, alice.id)
        await db_session.commit()

        assert revoked == 2
        assert await RefreshTokenStore.count_active_for_user(db_session, alice.id) == 0
        assert await RefreshTokenStore.count_active_for_user(db_session, bob.id) == 1

    @pytest.mark.asyncio
    async def test_revoke_all_skips_already_revoked(self, db_session, make_user):
        user = await make_user()
        raw = tokens.issue_refresh(user.id, user.mobile_number, user.role.value)
        record = await RefreshTokenStore.persist(db_session, user.id, raw, _future(days=7))
        await RefreshTokenStore.revoke(db_session, record.id)
        await db_session.commit()

        assert await RefreshTokenStore.revoke_all_active_for_user(db_session, user.id) == 0


class TestPurge:

    @pytest.mark.asyncio
    async def test_purge_removes_only_expired(self, db_session, make_user):
        user = await make_user()
        live = tokens.issue_refresh(user.id, user.mobile_number, user.role.value)
        stale = tokens.issue_refresh(user.id, user.mobile_number, user.role.value)
        await RefreshTokenStore.persist(db_session, user.id, live, _future(days=7))
        await RefreshTokenStore.persist(db_session, user.id, stale, _future(days=-1))
        await db_session.commit()

        assert await RefreshTokenStore.purge_expired(db_session) == 1
        await db_session.commit()

        assert await RefreshTokenStore.verify_presented(db_session, live) is not None

    @pytest.mark.asyncio
    async def test_housekeeping_pass_purges_expired(self, db_session, make_user):
        user = await make_user()
        stale = tokens.issue_refresh(user.id, user.mobile_number, user.role.value)
        await RefreshTokenStore.persist(db_session, user.id, stale, _future(days=-1))
        await db_session.commit()

        removed = await run_housekeeping()

        assert removed["refresh_tokens"] == 1
        remaining = await db_session.execute(select(RefreshToken.id))
        assert remaining.scalars().all() == []


class TestCountActive:

    @pytest.mark.asyncio
    async def test_ignores_expired_and_revoked(self, db_session, make_user):
        user = await make_user()
        live, expired, revoked = (
            tokens.issue_refresh(user.id, user.mobile_number, user.role.value) for _ in range(3)
        )
        await RefreshTokenStore.persist(db_session, user.id, live, _future(days=7))
        await RefreshTokenStore.persist(db_session, user.id, expired, _future(days=-1))
        record = await RefreshTokenStore.persist(db_session, user.id, revoked, _future(days=7))
        await RefreshTokenStore.revoke(db_session, record.id)
        await db_session.commit()

        assert await RefreshTokenStore.count_active_for_user(db_session, user.id) == 1
