"""SMS delivery."""

import logging

logger = logging.getLogger(__name__)


class SmsService:
    """Placeholder provider: records the send without contacting a gateway."""

    is_configured = False

    async def send_otp(self, mobile_number: str, otp: str) -> None:
        # TODO: plug in an SMS gateway (MSG91 / Twilio) once a provider account exists
        logger.info(f"[SMS] OTP message queued for {mobile_number[:2]}******{mobile_number[-2:]}")
