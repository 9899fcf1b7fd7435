"""Provider configuration passed explicitly to services and gateways.

Secrets and provider endpoints are read once from Django settings into an
immutable ``ProviderConfig``.  Components receive it via their constructor,
so tests build their own instance instead of patching settings.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from pydantic import BaseModel, ConfigDict, field_validator

OTP_MODES = ("code", "link")


class TelegramChannel(BaseModel):
    """Bot token + chat id pair for one staff chat feed."""

    model_config = ConfigDict(frozen=True)

    bot_token: str = ""
    chat_id: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)


class ProviderConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    site_url: str = "http://localhost:8000"
    otp_mode: str = "code"
    otp_expiry_minutes: int = 10
    default_country_code: str = "44"
    invoice_ttl_minutes: int = 60
    bank_details: Optional[Dict[str, Any]] = None

    legacy_webhook_secret: str = ""
    nowpayments_ipn_secret: str = ""
    nowpayments_api_key: str = ""
    nowpayments_api_url: str = "https://api.nowpayments.io/v1"
    nowpayments_ipn_url: str = ""
    require_webhook_signatures: bool = False

    telegram_orders: TelegramChannel = TelegramChannel()
    telegram_fast: TelegramChannel = TelegramChannel()
    telegram_payments: TelegramChannel = TelegramChannel()

    sendgrid_api_key: str = ""
    sendgrid_from: str = "no-reply@example.com"

    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_messaging_service_sid: str = ""
    twilio_from_number: str = ""

    http_timeout: float = 10.0

    @field_validator("otp_mode")
    @classmethod
    def otp_mode_must_be_known(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in OTP_MODES:
            raise ValueError(f"OTP mode must be one of {OTP_MODES}, got {v!r}.")
        return v

    @field_validator("site_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("default_country_code")
    @classmethod
    def country_code_digits(cls, v: str) -> str:
        v = v.strip().lstrip("+")
        if not v.isdigit():
            raise ValueError("Default country code must be numeric.")
        return v

    @property
    def ipn_callback_url(self) -> str:
        return self.nowpayments_ipn_url or f"{self.site_url}/api/v1/payments/webhook/"

    def unsigned_webhook_families(self) -> list[str]:
        """Payload families whose signature check is disabled by an empty secret."""
        missing = []
        if not self.legacy_webhook_secret:
            missing.append("legacy")
        if not self.nowpayments_ipn_secret:
            missing.append("nowpayments")
        return missing

    @classmethod
    def from_settings(cls) -> ProviderConfig:
        return cls(
            site_url=settings.SITE_URL,
            otp_mode=settings.OTP_MODE,
            otp_expiry_minutes=settings.OTP_EXPIRY_MINUTES,
            default_country_code=settings.DEFAULT_COUNTRY_CODE,
            invoice_ttl_minutes=settings.INVOICE_TTL_MINUTES,
            bank_details=settings.BANK_DETAILS,
            legacy_webhook_secret=settings.PAYMENT_WEBHOOK_SECRET,
            nowpayments_ipn_secret=settings.NOWPAYMENTS_IPN_SECRET,
            nowpayments_api_key=settings.NOWPAYMENTS_API_KEY,
            nowpayments_api_url=settings.NOWPAYMENTS_API_URL,
            nowpayments_ipn_url=settings.NOWPAYMENTS_IPN_URL,
            require_webhook_signatures=settings.WEBHOOK_REQUIRE_SIGNATURES,
            telegram_orders=TelegramChannel(
                bot_token=settings.TELEGRAM_BOT_TOKEN,
                chat_id=settings.TELEGRAM_CHAT_ID,
            ),
            telegram_fast=TelegramChannel(
                bot_token=settings.TELEGRAM_FAST_BOT_TOKEN,
                chat_id=settings.TELEGRAM_FAST_CHAT_ID,
            ),
            telegram_payments=TelegramChannel(
                bot_token=settings.TELEGRAM_PAYMENT_BOT_TOKEN,
                chat_id=settings.TELEGRAM_PAYMENT_CHAT_ID,
            ),
            sendgrid_api_key=settings.SENDGRID_API_KEY,
            sendgrid_from=settings.SENDGRID_FROM,
            twilio_account_sid=settings.TWILIO_ACCOUNT_SID,
            twilio_auth_token=settings.TWILIO_AUTH_TOKEN,
            twilio_messaging_service_sid=settings.TWILIO_MESSAGING_SERVICE_SID,
            twilio_from_number=settings.TWILIO_FROM_NUMBER,
            http_timeout=settings.OUTBOUND_HTTP_TIMEOUT,
        )


def get_provider_config() -> ProviderConfig:
    """Build the config from settings, turning bad values into ``ImproperlyConfigured``."""
    try:
        return ProviderConfig.from_settings()
    except ValueError as exc:
        raise ImproperlyConfigured(str(exc)) from exc
