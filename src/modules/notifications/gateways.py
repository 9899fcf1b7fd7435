"""Outbound messaging collaborators: Telegram staff chats, SendGrid email, Twilio SMS.

Each raises ``UpstreamError`` when it is not configured, the transport
fails or the provider answers with a non-2xx status.
"""

from __future__ import annotations

import structlog

from modules.core.config import TelegramChannel
from modules.core.exceptions import UpstreamError
from shared.infrastructure.http import HttpGateway

logger = structlog.get_logger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"
SENDGRID_API_URL = "https://api.sendgrid.com/v3/mail/send"
TWILIO_API_URL = "https://api.twilio.com/2010-04-01"


class TelegramGateway(HttpGateway):
    """Sends HTML-formatted messages to the staff chat of a channel."""

    provider = "telegram"

    def _channel(self, channel: str) -> TelegramChannel:
        channels = {
            "orders": self._config.telegram_orders,
            "fast": self._config.telegram_fast,
            "payments": self._config.telegram_payments,
        }
        try:
            return channels[channel]
        except KeyError:
            raise UpstreamError(f"Unknown notification channel {channel!r}.") from None

    def send(self, channel: str, text: str) -> None:
        target = self._channel(channel)
        if not target.is_configured:
            raise UpstreamError(f"Telegram channel {channel!r} is not configured.")

        response = self._post(
            f"{TELEGRAM_API_URL}/bot{target.bot_token}/sendMessage",
            json={"chat_id": target.chat_id, "text": text, "parse_mode": "HTML"},
        )
        payload = self._json(response)
        if not payload.get("ok"):
            raise UpstreamError(f"Telegram rejected the message: {payload.get('description')}")


class SendGridEmailGateway(HttpGateway):
    """Sends plain-text transactional email through the SendGrid v3 API."""

    provider = "sendgrid"

    def send(self, to: str, subject: str, body: str) -> None:
        if not self._config.sendgrid_api_key:
            raise UpstreamError("SendGrid is not configured.")
        if not to:
            raise UpstreamError("Missing email recipient.")

        self._post(
            SENDGRID_API_URL,
            headers={"Authorization": f"Bearer {self._config.sendgrid_api_key}"},
            json={
                "personalizations": [{"to": [{"email": to}]}],
                "from": {"email": self._config.sendgrid_from, "name": "Green Hub"},
                "subject": subject,
                "content": [{"type": "text/plain", "value": body}],
            },
        )
        logger.info("email.sent", subject=subject)


class TwilioSmsGateway(HttpGateway):
    """Sends SMS through Twilio's Messages resource; returns the message SID."""

    provider = "twilio"

    def send(self, to: str, body: str) -> str:
        config = self._config
        if not config.twilio_account_sid or not config.twilio_auth_token:
            raise UpstreamError("Missing Twilio credentials.")
        if not config.twilio_messaging_service_sid and not config.twilio_from_number:
            raise UpstreamError(
                "Configure TWILIO_MESSAGING_SERVICE_SID or TWILIO_FROM_NUMBER."
            )
        if not to:
            raise UpstreamError("Missing SMS destination number.")

        form = {"To": to, "Body": body}
        if config.twilio_messaging_service_sid:
            form["MessagingServiceSid"] = config.twilio_messaging_service_sid
        else:
            form["From"] = config.twilio_from_number

        response = self._post(
            f"{TWILIO_API_URL}/Accounts/{config.twilio_account_sid}/Messages.json",
            data=form,
            auth=(config.twilio_account_sid, config.twilio_auth_token),
        )
        sid = self._json(response).get("sid", "")
        logger.info("sms.sent", sid=sid)
        return sid
