"""
Notification transports: SMTP email and Twilio WhatsApp/SMS.

The transports are blocking clients. ``Notifier`` runs them in a worker
thread with a timeout and turns every failure into ``ExternalServiceError``.
One ``Notifier`` is built at startup and injected into routes.
"""

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

from twilio.rest import Client

from app.core.config import Settings
from app.core.exceptions import ExternalServiceError
from app.core.logging import get_logger

logger = get_logger(__name__)

WHATSAPP = "whatsapp"
SMS = "sms"


class EmailSender(Protocol):
    configured: bool

    def send_email(self, to: str, subject: str, html: str) -> bool: ...


class MessageSender(Protocol):
    configured: bool

    def send_message(self, to: str, body: str, channel: str) -> bool: ...


class SmtpEmailSender:
    """Sends HTML email over SMTP with STARTTLS."""

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        from_address: str,
        use_tls: bool = True,
        timeout: float = 15.0,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_address = from_address
        self.use_tls = use_tls
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.host)

    def send_email(self, to: str, subject: str, html: str) -> bool:
        if not self.configured:
            raise ExternalServiceError("Email service is not configured")

        msg = MIMEMultipart()
        msg["From"] = self.from_address
        msg["To"] = to
        msg["Subject"] = subject
        msg.attach(MIMEText(html, "html"))

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.user:
                server.login(self.user, self.password)
            server.send_message(msg)
        return True


class TwilioMessageSender:
    """Sends WhatsApp and SMS messages through Twilio."""

    def __init__(self, account_sid: str, auth_token: str, from_number: str) -> None:
        self.from_number = from_number
        self._client = Client(account_sid, auth_token) if account_sid and auth_token else None

    @property
    def configured(self) -> bool:
        return self._client is not None and bool(self.from_number)

    def send_message(self, to: str, body: str, channel: str) -> bool:
        if not self.configured:
            raise ExternalServiceError("Messaging service is not configured")

        if channel == WHATSAPP:
            sender, recipient = f"whatsapp:{self.from_number}", f"whatsapp:{to}"
        else:
            sender, recipient = self.from_number, to

        message = self._client.messages.create(from_=sender, body=body, to=recipient)
        logger.info("Message queued", extra={"channel": channel, "sid": message.sid})
        return True


class Notifier:
    """Async facade over the transports with time-bounded calls."""

    def __init__(
        self,
        email_sender: EmailSender,
        message_sender: MessageSender,
        timeout: float = 15.0,
    ) -> None:
        self.email_sender = email_sender
        self.message_sender = message_sender
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "Notifier":
        return cls(
            email_sender=SmtpEmailSender(
                host=settings.SMTP_HOST,
                port=settings.SMTP_PORT,
                user=settings.SMTP_USER,
                password=settings.SMTP_PASSWORD,
                from_address=settings.EMAIL_FROM,
                use_tls=settings.SMTP_USE_TLS,
                timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
            ),
            message_sender=TwilioMessageSender(
                account_sid=settings.TWILIO_ACCOUNT_SID,
                auth_token=settings.TWILIO_AUTH_TOKEN,
                from_number=settings.TWILIO_PHONE_NUMBER,
            ),
            timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
        )

    async def _call(self, channel: str, func, *args) -> None:
        try:
            delivered = await asyncio.wait_for(asyncio.to_thread(func, *args), self.timeout)
        except ExternalServiceError:
            raise
        except asyncio.TimeoutError:
            logger.warning("Notification timed out", extra={"channel": channel})
            raise ExternalServiceError(f"{channel} delivery timed out")
        except Exception as exc:
            logger.error("Notification failed", extra={"channel": channel}, exc_info=True)
            raise ExternalServiceError(f"{channel} delivery failed: {exc}")

        if not delivered:
            raise ExternalServiceError(f"{channel} delivery was rejected")

    async def send_email(self, to: str, subject: str, html: str) -> None:
        await self._call("email", self.email_sender.send_email, to, subject, html)

    async def send_message(self, to: str, body: str, channel: str) -> None:
        await self._call(channel, self.message_sender.send_message, to, body, channel)

    @property
    def email_available(self) -> bool:
        return self.email_sender.configured

    @property
    def messaging_available(self) -> bool:
        return self.message_sender.configured


def communication_channels(
    email: str | None,
    phones: list[str],
    notifier: Notifier,
) -> dict[str, dict]:
    """Which channels can reach a recipient with this email and these phones."""
    can_message = notifier.messaging_available and bool(phones)
    return {
        "email": {
            "available": notifier.email_available and bool(email),
            "address": email,
        },
        "whatsapp": {"available": can_message, "phones": phones},
        "sms": {"available": can_message, "phones": phones},
    }


async def send_test_email(notifier: Notifier, to: str, app_name: str) -> None:
    """Send a short message proving the SMTP settings work."""
    html = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        '<h2 style="color: #2563eb;">Email Configuration Test</h2>'
        "<p>Your email configuration is working correctly.</p>"
        f"<p>This is a test email sent from <strong>{app_name}</strong>.</p>"
        "</div>"
    )
    await notifier.send_email(to, f"{app_name} - Email Test", html)
    logger.info("Test email sent", extra={"to": to})
