from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from rest_framework.test import APIClient

from modules.core.config import ProviderConfig, TelegramChannel
from modules.orders.models import Order


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


@pytest.fixture()
def provider_config():
    """Fully configured providers; tests override fields with ``model_copy``."""
    return ProviderConfig(
        site_url="https://lockers.test",
        otp_mode="code",
        otp_expiry_minutes=10,
        default_country_code="44",
        invoice_ttl_minutes=60,
        bank_details={"accountName": "Green Hub Ltd", "accountNumber": "12345678"},
        legacy_webhook_secret="legacy-secret",
        nowpayments_ipn_secret="ipn-secret",
        nowpayments_api_key="np-key",
        telegram_orders=TelegramChannel(bot_token="bot-main", chat_id="100"),
        telegram_fast=TelegramChannel(bot_token="bot-main", chat_id="200"),
        telegram_payments=TelegramChannel(bot_token="bot-pay", chat_id="300"),
        sendgrid_api_key="sg-key",
        sendgrid_from="orders@lockers.test",
        twilio_account_sid="AC123",
        twilio_auth_token="twilio-token",
        twilio_from_number="+447000000000",
    )


class RecordingEventBus:
    """Event bus double that keeps every published event."""

    def __init__(self) -> None:
        self.events = []

    def publish(self, event) -> None:
        self.events.append(event)

    def subscribe(self, event_class, handler) -> None:
        raise NotImplementedError

    def names(self):
        return [event.event_name for event in self.events]


@pytest.fixture()
def event_bus():
    return RecordingEventBus()


@pytest.fixture()
def email_gateway():
    return MagicMock(name="email_gateway")


@pytest.fixture()
def sms_gateway():
    gateway = MagicMock(name="sms_gateway")
    gateway.send.return_value = "SM123"
    return gateway


@pytest.fixture()
def make_order():
    """Persist an order with sensible defaults; keyword args override fields."""

    def _make(**overrides) -> Order:
        fields = {
            "product_id": "locker-m",
            "product_name": "Medium Locker Box",
            "hub_id": "hub-1",
            "hub_name": "Camden Hub",
            "hub_postcode": "NW1 8AB",
            "base_price_gbp": Decimal("90.00"),
            "price_gbp": Decimal("100.00"),
            "customer_name": "Jane Doe",
            "customer_phone": "+447123456789",
            "customer_email": "jane.doe@example.com",
        }
        fields.update(overrides)
        order = Order(**fields)
        order.save()
        return order

    return _make
