"""
Tests for the Telegram webhook and linking endpoints.

Run with: pytest tests/test_telegram_routes.py -v
"""

import pytest
from sqlalchemy import select

from app.core import otp, tokens
from app.models.user import User, UserRole
from app.services.otp_delivery import DeliveryMethod


def _update(text, chat_id=555001):
    return {
        "update_id": 10,
        "message": {
            "message_id": 1,
            "date": 1760000000,
            "chat": {"id": chat_id, "type": "private"},
            "text": text,
        },
    }


def _bearer(user):
    return {"Authorization": f"Bearer {tokens.issue_access(user.id, user.mobile_number, user.role.value)}"}


async def _linked(db, user_id):
    result = await db.execute(
        select(User.is_telegram_linked, User.telegram_chat_id).where(User.id == user_id)
    )
    return tuple(result.one())


class TestWebhook:

    @pytest.mark.asyncio
    async def test_start_links_and_sends_verification_code(self, client, dispatcher, db_session, make_user):
        user = await make_user(is_verified=False, telegram_chat_id=None)

        response = await client.post("/api/telegram/webhook", json=_update(f"/start {user.id}"))

        assert response.status_code == 200
        linked, chat_id = await _linked(db_session, user.id)
        assert linked is True
        assert chat_id == "555001"

        assert len(dispatcher.sent) == 1
        sent = dispatcher.sent[0]
        assert sent["method"] == DeliveryMethod.TELEGRAM
        assert sent["destination"] == "555001"
        assert sent["verification"] is True
        assert otp.validate(sent["code"], user.otp_secret)

    @pytest.mark.asyncio
    async def test_full_registration_flow(self, client, dispatcher, db_session):
        register = await client.post(
            "/api/auth/register",
            json={"name": "Meera", "mobile_number": "9812345678", "role": "Buyer"},
        )
        user_id = register.json()["data"]["user"]["id"]

        await client.post("/api/telegram/webhook", json=_update(f"/start {user_id}"))
        verify = await client.post(
            "/api/auth/verify-registration",
            json={"userId": user_id, "otp": dispatcher.last_code},
        )

        assert verify.status_code == 200
        assert verify.json()["data"]["user"]["account_state"] == "verified_idle"

    @pytest.mark.asyncio
    async def test_verified_user_gets_confirmation_only(self, client, dispatcher, make_user):
        user = await make_user(is_verified=True, telegram_chat_id=None)

        response = await client.post("/api/telegram/webhook", json=_update(f"/start {user.id}"))

        assert response.status_code == 200
        assert dispatcher.sent == []
        assert len(dispatcher.notices) == 1
        assert user.mobile_number in dispatcher.notices[0]["text"]

    @pytest.mark.asyncio
    async def test_unknown_user_is_told_to_register(self, client, dispatcher):
        response = await client.post("/api/telegram/webhook", json=_update("/start nobody"))

        assert response.status_code == 200
        assert dispatcher.notices[0]["text"] == "User not found. Please register first."

    @pytest.mark.asyncio
    async def test_plain_message_gets_instructions(self, client, dispatcher):
        response = await client.post("/api/telegram/webhook", json=_update("hello"))

        assert response.status_code == 200
        assert "/start" in dispatcher.notices[0]["text"]

    @pytest.mark.asyncio
    async def test_delivery_failure_still_acknowledged(self, client, dispatcher, db_session, make_user):
        user = await make_user(is_verified=False, telegram_chat_id=None)
        dispatcher.fail_with = "bot api unreachable"

        response = await client.post("/api/telegram/webhook", json=_update(f"/start {user.id}"))

        assert response.status_code == 200
        linked, _ = await _linked(db_session, user.id)
        assert linked is True
        assert dispatcher.sent == []
        assert dispatcher.notices == [
            {"chat_id": "555001", "text": "Failed to link account. Please try again."}
        ]

    @pytest.mark.asyncio
    async def test_secret_token_enforced(self, client, monkeypatch):
        from app.core.config import get_settings

        monkeypatch.setattr(get_settings(), "telegram_webhook_secret", "s3cret")

        rejected = await client.post("/api/telegram/webhook", json=_update("hello"))
        accepted = await client.post(
            "/api/telegram/webhook",
            json=_update("hello"),
            headers={"X-Telegram-Bot-Api-Secret-Token": "s3cret"},
        )

        assert rejected.status_code == 403
        assert accepted.status_code == 200


class TestLinkEndpoints:

    @pytest.mark.asyncio
    async def test_admin_links_chat(self, client, dispatcher, db_session, make_user):
        admin = await make_user(role=UserRole.ADMIN)
        user = await make_user(is_verified=False, telegram_chat_id=None)

        response = await client.post(
            "/api/telegram/link",
            json={"user_id": user.id, "chat_id": "99"},
            headers=_bearer(admin),
        )

        assert response.status_code == 200
        assert (await _linked(db_session, user.id)) == (True, "99")
        assert dispatcher.sent[0]["destination"] == "99"

    @pytest.mark.asyncio
    async def test_non_admin_cannot_link(self, client, make_user):
        farmer = await make_user(role=UserRole.FARMER)

        response = await client.post(
            "/api/telegram/link",
            json={"user_id": farmer.id, "chat_id": "99"},
            headers=_bearer(farmer),
        )

        assert response.status_code == 403
        assert response.json()["code"] == "PERMISSION_DENIED"

    @pytest.mark.asyncio
    async def test_status_and_unlink_own_account(self, client, db_session, make_user):
        user = await make_user(telegram_chat_id="1234")

        status = await client.get(f"/api/telegram/{user.id}/status", headers=_bearer(user))
        assert status.status_code == 200
        data = status.json()["data"]
        assert data["is_telegram_linked"] is True
        assert data["telegram_bot_link"].endswith(user.id)

        unlink = await client.delete(f"/api/telegram/{user.id}/unlink", headers=_bearer(user))
        assert unlink.status_code == 200
        assert (await _linked(db_session, user.id)) == (False, None)

    @pytest.mark.asyncio
    async def test_cannot_read_another_users_status(self, client, make_user):
        alice = await make_user()
        bob = await make_user()

        response = await client.get(f"/api/telegram/{bob.id}/status", headers=_bearer(alice))

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_status_requires_authentication(self, client, make_user):
        user = await make_user()

        response = await client.get(f"/api/telegram/{user.id}/status")

        assert response.status_code == 401
