"""User notifications and operator alerts.

User notices (low credits, plan downgrades) go out by email when SMTP is
configured and are only logged otherwise. Maintenance failures are posted to
an operator Discord webhook when one is configured.
"""

import smtplib
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from enum import StrEnum
from typing import Any

import httpx

from tldw.config import settings
from tldw.logging import get_logger

logger = get_logger(__name__)


class NotificationKind(StrEnum):
    """What a user notification is about."""

    LOW_CREDITS = "low_credits"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    MONTHLY_RESET = "monthly_reset"


@dataclass
class Notification:
    """A message for one user."""

    recipient: str
    kind: NotificationKind
    subject: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


def low_credit_notification(email: str, name: str, balance: int) -> Notification:
    return Notification(
        recipient=email,
        kind=NotificationKind.LOW_CREDITS,
        subject="You're running low on summary credits",
        message=(
            f"Hi {name}, you have {balance} credits left this month. "
            f"Upgrade to Pro for unlimited summaries: {settings.frontend_url}/pricing"
        ),
        context={"balance": balance},
    )


def subscription_expired_notification(email: str, name: str) -> Notification:
    return Notification(
        recipient=email,
        kind=NotificationKind.SUBSCRIPTION_EXPIRED,
        subject="Your Pro subscription has ended",
        message=(
            f"Hi {name}, your Pro subscription has ended and your account is back on "
            f"the free plan. Renew any time at {settings.frontend_url}/pricing"
        ),
    )


class NotificationService:
    """Delivers user notifications and operator alerts."""

    def __init__(self) -> None:
        self.email_enabled = bool(settings.notify_email_smtp_host and settings.notify_email_from)
        self.ops_webhook_url = settings.ops_discord_webhook_url

    def notify(self, notification: Notification) -> bool:
        """Send a user notification.

        Returns:
            True if an email was sent. Without SMTP the notification is only
            logged and False is returned.
        """
        logger.info(
            "user_notification",
            kind=notification.kind.value,
            recipient=notification.recipient,
            subject=notification.subject,
        )
        if not self.email_enabled:
            return False

        try:
            return self._send_email(notification)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "notification_email_failed",
                recipient=notification.recipient,
                error=str(e),
            )
            return False

    def _send_email(self, notification: Notification) -> bool:
        if not settings.notify_email_smtp_host or not settings.notify_email_from:
            logger.warning("email_settings_missing")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = notification.subject
        msg["From"] = settings.notify_email_from
        msg["To"] = notification.recipient
        msg.attach(MIMEText(notification.message, "plain"))
        msg.attach(
            MIMEText(
                f"<html><body><p>{notification.message}</p>"
                f"<hr><p><em>TLDW</em></p></body></html>",
                "html",
            )
        )

        with smtplib.SMTP(
            settings.notify_email_smtp_host,
            settings.notify_email_smtp_port,
        ) as server:
            server.starttls()
            if settings.notify_email_username and settings.notify_email_password:
                server.login(settings.notify_email_username, settings.notify_email_password)
            server.sendmail(settings.notify_email_from, [notification.recipient], msg.as_string())

        logger.info("notification_email_sent", kind=notification.kind.value)
        return True

    async def alert_ops(self, title: str, message: str, context: dict[str, Any] | None = None) -> bool:
        """Post an operator alert to Discord, if a webhook is configured."""
        if not self.ops_webhook_url:
            return False

        fields = []
        for key, value in (context or {}).items():
            str_value = str(value)
            if len(str_value) > 200:
                str_value = str_value[:197] + "..."
            fields.append({"name": key.replace("_", " ").title(), "value": str_value, "inline": True})

        payload = {
            "embeds": [
                {
                    "title": title,
                    "description": message,
                    "color": 0xE74C3C,
                    "fields": fields[:25],  # Discord limit
                    "timestamp": datetime.now(UTC).isoformat(),
                }
            ]
        }

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(self.ops_webhook_url, json=payload, timeout=10.0)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("ops_alert_failed", title=title, error=str(e))
            return False

        logger.info("ops_alert_sent", title=title)
        return True


_notification_service: NotificationService | None = None


def get_notification_service() -> NotificationService:
    """Get the notification service singleton."""
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service
