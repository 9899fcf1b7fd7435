"""Unit tests for ProviderConfig."""

from __future__ import annotations

import pytest
from django.core.exceptions import ImproperlyConfigured
from django.test import override_settings
from pydantic import ValidationError

from modules.core.config import ProviderConfig, TelegramChannel, get_provider_config

pytestmark = pytest.mark.unit


class TestProviderConfig:
    def test_defaults(self):
        config = ProviderConfig()

        assert config.otp_mode == "code"
        assert config.otp_expiry_minutes == 10
        assert config.invoice_ttl_minutes == 60
        assert config.default_country_code == "44"

    def test_otp_mode_is_normalised(self):
        assert ProviderConfig(otp_mode=" LINK ").otp_mode == "link"

    def test_unknown_otp_mode(self):
        with pytest.raises(ValidationError):
            ProviderConfig(otp_mode="carrier-pigeon")

    def test_site_url_trailing_slash_is_stripped(self):
        assert ProviderConfig(site_url="https://lockers.test/").site_url == "https://lockers.test"

    def test_country_code_accepts_plus(self):
        assert ProviderConfig(default_country_code="+33").default_country_code == "33"

    def test_ipn_callback_defaults_to_own_webhook(self):
        config = ProviderConfig(site_url="https://lockers.test")
        assert config.ipn_callback_url == "https://lockers.test/api/v1/payments/webhook/"

    def test_unsigned_webhook_families(self):
        assert ProviderConfig().unsigned_webhook_families() == ["legacy", "nowpayments"]
        assert ProviderConfig(
            legacy_webhook_secret="a", nowpayments_ipn_secret="b"
        ).unsigned_webhook_families() == []

    def test_is_immutable(self):
        config = ProviderConfig()
        with pytest.raises(ValidationError):
            config.otp_mode = "link"

    def test_telegram_channel_needs_token_and_chat(self):
        assert not TelegramChannel(bot_token="t").is_configured
        assert TelegramChannel(bot_token="t", chat_id="1").is_configured


class TestFromSettings:
    def test_reads_settings(self):
        config = get_provider_config()

        assert config.site_url == "https://lockers.test"
        assert config.bank_details["accountName"] == "Green Hub Ltd"

    @override_settings(OTP_MODE="fax")
    def test_bad_value_is_improperly_configured(self):
        with pytest.raises(ImproperlyConfigured):
            get_provider_config()

    @override_settings(TELEGRAM_FAST_BOT_TOKEN="fast-bot", TELEGRAM_FAST_CHAT_ID="-100")
    def test_telegram_channels(self):
        assert get_provider_config().telegram_fast == TelegramChannel(
            bot_token="fast-bot", chat_id="-100"
        )
