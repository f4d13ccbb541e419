"""
Email delivery for AgriConnect.

Supports:
- SMTP (works with any email provider)
- Console logging (development fallback when SMTP is not configured)

IMPORTANT: Never log OTP values.
"""

import asyncio
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class EmailService:
    """SMTP email sender. Failures raise; the caller decides how to report them."""

    def __init__(self):
        settings = get_settings()
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_user
        self.smtp_password = settings.smtp_password
        self.smtp_from_email = settings.smtp_from_email
        self.smtp_from_name = settings.smtp_from_name
        self.smtp_use_tls = settings.smtp_use_tls
        self.timeout = settings.delivery_timeout_seconds

        self.is_configured = bool(
            self.smtp_host and
            self.smtp_port and
            self.smtp_user and
            self.smtp_password
        )

        if self.is_configured:
            logger.info(f"Email service configured with SMTP: {self.smtp_host}:{self.smtp_port}")
        else:
            logger.warning("Email service not configured - emails will be logged to console")

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> None:
        """
        Send an email.

        Raises:
            smtplib.SMTPException / OSError: when the SMTP exchange fails
        """
        if not self.is_configured:
            # Development fallback - never include the body, it carries the code
            logger.info(f"[EMAIL] To: {to_email}, Subject: {subject}")
            return

        try:
            # SMTP is blocking; keep it off the event loop
            await asyncio.to_thread(
                self._send_smtp,
                to_email,
                subject,
                html_body,
                text_body,
            )
        except smtplib.SMTPAuthenticationError:
            logger.error("SMTP authentication failed - check credentials")
            raise
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            raise

        logger.info(f"Email sent successfully to {to_email}")

    def _send_smtp(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> None:
        """Send email via SMTP (synchronous)."""
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.smtp_from_name} <{self.smtp_from_email}>"
        msg["To"] = to_email

        if text_body:
            msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        context = ssl.create_default_context()
        if self.smtp_use_tls:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                server.starttls(context=context)
                server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.smtp_from_email, to_email, msg.as_string())
        else:
            # SSL connection (port 465)
            with smtplib.SMTP_SSL(
                self.smtp_host, self.smtp_port, context=context, timeout=self.timeout
            ) as server:
                server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.smtp_from_email, to_email, msg.as_string())

    async def send_otp_email(
        self,
        to_email: str,
        otp: str,
        expiry_minutes: int = 5,
    ) -> None:
        """
        Send a login OTP email.

        Args:
            to_email: Recipient address
            otp: The OTP code (in the email only, NOT logged)
            expiry_minutes: Validity shown to the user
        """
        subject = "Your AgriConnect OTP"

        html_body = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>OTP Verification</title>
</head>
<body style="margin: 0; padding: 0; font-family: Arial, sans-serif; background-color: #f4f4f4;">
    <div style="max-width: 600px; margin: 40px auto; background: #ffffff;">
        <div style="padding: 30px; text-align: center; background-color: #4CAF50;">
            <h1 style="margin: 0; color: #ffffff; font-size: 28px;">AgriConnect</h1>
        </div>
        <div style="padding: 30px;">
            <h2 style="margin: 0 0 20px 0; color: #333333;">OTP Verification</h2>
            <p style="color: #666666; font-size: 16px;">Your One-Time Password (OTP) for AgriConnect is:</p>
            <div style="background-color: #f8f8f8; border: 2px dashed #4CAF50; border-radius: 8px; padding: 20px; text-align: center; margin: 30px 0;">
                <p style="margin: 0; font-size: 36px; font-weight: bold; color: #4CAF50; letter-spacing: 8px;">{otp}</p>
            </div>
            <p style="color: #666666; font-size: 14px;">This OTP is valid for <strong>{expiry_minutes} minutes</strong>.</p>
            <p style="color: #666666; font-size: 14px;">If you didn't request this OTP, please ignore this email.</p>
        </div>
    </div>
</body>
</html>
"""

        text_body = f"""
AgriConnect - OTP Verification

Your One-Time Password (OTP) is: {otp}

This OTP is valid for {expiry_minutes} minutes.
If you didn't request this OTP, please ignore this email.
"""

        logger.info(f"Sending OTP email to {to_email}")

        await self.send_email(
            to_email=to_email,
            subject=subject,
            html_body=html_body,
            text_body=text_body,
        )


# Singleton instance
_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get or create the email service singleton."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
