"""Telegram bot webhook and account linking endpoints."""

import logging
import secrets
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header

from app.core.config import get_settings
from app.core.dependencies import (
    CurrentClaims,
    DbSession,
    OtpDispatcherDep,
    ensure_self_or_admin,
    require_roles,
)
from app.core.exceptions import AuthError, DeliveryFailedError, PermissionDeniedError, UserNotFoundError
from app.core.tokens import TokenClaims
from app.models.user import UserRole
from app.schemas.telegram import (
    TelegramLinkRequest,
    TelegramStatusData,
    TelegramStatusResponse,
    TelegramUpdate,
)
from app.schemas.user import ApiResponse
from app.services.auth_service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter()


# ─────────────────────────────────────────────
# Bot Webhook
# ─────────────────────────────────────────────

@router.post("/webhook")
async def telegram_webhook(
    update: TelegramUpdate,
    db: DbSession,
    dispatcher: OtpDispatcherDep,
    x_telegram_bot_api_secret_token: Annotated[Optional[str], Header()] = None,
):
    """
    Receive a bot update.

    ``/start <userId>`` (sent by the deep link from registration) links the
    chat to the user. Telegram retries non-2xx replies, so domain failures are
    reported to the chat and the update is acknowledged.
    """
    expected = get_settings().telegram_webhook_secret
    if expected and not secrets.compare_digest(x_telegram_bot_api_secret_token or "", expected):
        logger.warning("Telegram webhook called with a bad secret token")
        raise PermissionDeniedError("Invalid webhook secret")

    if not update.message:
        return {"ok": True}

    chat_id = str(update.message.chat.id)
    user_id = update.start_payload()

    if user_id is None:
        await dispatcher.notify_telegram(
            chat_id,
            "Please use /start command with the link from the app to link your account.",
        )
        return {"ok": True}

    if not user_id:
        await dispatcher.notify_telegram(chat_id, "Invalid link. Please use the link from the app.")
        return {"ok": True}

    try:
        await AuthService.link_telegram(db, user_id, chat_id, dispatcher)
    except UserNotFoundError:
        await dispatcher.notify_telegram(chat_id, "User not found. Please register first.")
    except DeliveryFailedError:
        # the chat is linked; only the code did not go out
        await dispatcher.notify_telegram(chat_id, "Failed to link account. Please try again.")
    except AuthError as e:
        logger.warning(f"Telegram link failed: {e.message}")
        await dispatcher.notify_telegram(chat_id, "Failed to link account. Please try again.")

    return {"ok": True}


# ─────────────────────────────────────────────
# Manual Linking
# ─────────────────────────────────────────────

@router.post("/link", response_model=ApiResponse)
async def link_telegram(
    body: TelegramLinkRequest,
    db: DbSession,
    dispatcher: OtpDispatcherDep,
    _: Annotated[TokenClaims, Depends(require_roles(UserRole.ADMIN))],
):
    """Link a chat to a user without going through the bot (admin only)."""
    await AuthService.link_telegram(db, body.user_id, body.chat_id, dispatcher)
    return ApiResponse(message="Telegram linked successfully")


@router.delete("/{user_id}/unlink", response_model=ApiResponse)
async def unlink_telegram(user_id: str, claims: CurrentClaims, db: DbSession):
    ensure_self_or_admin(claims, user_id)
    await AuthService.unlink_telegram(db, user_id)
    return ApiResponse(message="Telegram unlinked successfully")


@router.get("/{user_id}/status", response_model=TelegramStatusResponse)
async def telegram_status(user_id: str, claims: CurrentClaims, db: DbSession):
    ensure_self_or_admin(claims, user_id)
    status_data = await AuthService.telegram_status(db, user_id)
    return TelegramStatusResponse(data=TelegramStatusData(**status_data))
