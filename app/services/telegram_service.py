"""Telegram Bot API client used to deliver OTPs to linked chats."""

import logging
from typing import Optional

import httpx

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class TelegramService:
    """Thin async wrapper over the Bot API ``sendMessage`` method."""

    def __init__(self):
        settings = get_settings()
        self.token = settings.telegram_bot_token
        self.api_base = settings.telegram_api_base.rstrip("/")
        self.timeout = settings.delivery_timeout_seconds
        self.is_configured = settings.telegram_configured

        if not self.is_configured:
            logger.warning("Telegram bot token not configured - messages will be logged to console")

    async def send_message(
        self,
        chat_id: str,
        text: str,
        parse_mode: Optional[str] = None,
    ) -> None:
        """
        Send ``text`` to ``chat_id``.

        Raises:
            httpx.HTTPError: on transport errors, timeouts and non-2xx replies
        """
        if not self.is_configured:
            logger.info(f"[TELEGRAM] Message to chat {chat_id} ({len(text)} chars)")
            return

        payload = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.api_base}/bot{self.token}/sendMessage",
                json=payload,
            )
            response.raise_for_status()

        logger.debug(f"Telegram message delivered to chat {chat_id}")

    async def send_otp(self, chat_id: str, otp: str, expiry_minutes: int = 5) -> None:
        await self.send_message(
            chat_id,
            f"🔐 Your AgriConnect OTP is: *{otp}*\n\n"
            f"⚠️ This OTP will expire in {expiry_minutes} minutes.",
            parse_mode="Markdown",
        )

    async def send_verification_otp(self, chat_id: str, otp: str, expiry_minutes: int = 5) -> None:
        await self.send_message(
            chat_id,
            "✅ Telegram linked successfully!\n\n"
            f"🔐 Your verification OTP is: *{otp}*\n\n"
            "Please enter this OTP in the app to complete your registration.\n\n"
            f"⚠️ This OTP will expire in {expiry_minutes} minutes.",
            parse_mode="Markdown",
        )


_telegram_service: Optional[TelegramService] = None


def get_telegram_service() -> TelegramService:
    """Get or create the Telegram service singleton."""
    global _telegram_service
    if _telegram_service is None:
        _telegram_service = TelegramService()
    return _telegram_service
