"""Routes an OTP to the delivery channel implied by the login identifier."""

import asyncio
import logging
from enum import Enum
from typing import Optional

from app.core.config import get_settings
from app.core.exceptions import DeliveryFailedError
from app.services.email_service import EmailService, get_email_service
from app.services.sms_service import SmsService
from app.services.telegram_service import TelegramService, get_telegram_service

logger = logging.getLogger(__name__)


class DeliveryMethod(str, Enum):
    EMAIL = "email"
    TELEGRAM = "telegram"
    SMS = "sms"


class OtpDispatcher:
    """Sends codes over email, Telegram or SMS with a bounded timeout."""

    def __init__(
        self,
        email: EmailService,
        telegram: TelegramService,
        sms: SmsService,
        timeout: float,
    ):
        self.email = email
        self.telegram = telegram
        self.sms = sms
        self.timeout = timeout

    async def _send(
        self,
        method: DeliveryMethod,
        destination: str,
        code: str,
        verification: bool = False,
    ) -> None:
        expiry = get_settings().otp_window_minutes
        if method == DeliveryMethod.EMAIL:
            await self.email.send_otp_email(destination, code, expiry_minutes=expiry)
        elif method == DeliveryMethod.TELEGRAM:
            if verification:
                await self.telegram.send_verification_otp(destination, code, expiry_minutes=expiry)
            else:
                await self.telegram.send_otp(destination, code, expiry_minutes=expiry)
        elif method == DeliveryMethod.SMS:
            await self.sms.send_otp(destination, code)
        else:
            raise ValueError(f"Unsupported delivery method: {method}")

    async def dispatch(
        self,
        method: DeliveryMethod,
        destination: str,
        code: str,
        verification: bool = False,
    ) -> None:
        """
        Deliver ``code`` to ``destination``.

        ``verification`` selects the post-link wording on Telegram.

        Raises:
            DeliveryFailedError: sender raised or did not finish within the timeout
        """
        settings = get_settings()
        try:
            await asyncio.wait_for(
                self._send(method, destination, code, verification),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.error(f"OTP delivery via {method.value} timed out after {self.timeout}s")
            raise DeliveryFailedError(
                "OTP delivery timed out",
                data=None if settings.is_production else {"error": "timeout"},
            ) from exc
        except Exception as exc:
            logger.error(f"OTP delivery via {method.value} failed: {exc}")
            raise DeliveryFailedError(
                "Failed to send OTP",
                data=None if settings.is_production else {"error": str(exc) or type(exc).__name__},
            ) from exc

        logger.info(f"OTP dispatched via {method.value}")

    async def notify_telegram(self, chat_id: str, text: str) -> bool:
        """Best-effort informational message. Returns False when it could not be sent."""
        try:
            await asyncio.wait_for(self.telegram.send_message(chat_id, text), timeout=self.timeout)
        except Exception as exc:
            logger.warning(f"Telegram notification to chat {chat_id} failed: {exc}")
            return False
        return True


_dispatcher: Optional[OtpDispatcher] = None


def get_otp_dispatcher() -> OtpDispatcher:
    """Get or create the dispatcher singleton (FastAPI dependency)."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = OtpDispatcher(
            email=get_email_service(),
            telegram=get_telegram_service(),
            sms=SmsService(),
            timeout=get_settings().delivery_timeout_seconds,
        )
    return _dispatcher
