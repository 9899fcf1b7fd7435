"""Unit tests for the Telegram, SendGrid and Twilio gateways.

HTTP traffic is served by ``httpx.MockTransport``; each handler records the
request it saw.
"""

from __future__ import annotations

import json
from urllib.parse import parse_qs

import httpx
import pytest

from modules.core.config import TelegramChannel
from modules.core.exceptions import UpstreamError
from modules.notifications.gateways import (
    SendGridEmailGateway,
    TelegramGateway,
    TwilioSmsGateway,
)

pytestmark = pytest.mark.unit


class Recorder:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.body = {} if body is None else body
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def transport(self):
        return httpx.MockTransport(self)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


# ===========================================================================
# Telegram
# ===========================================================================


class TestTelegramGateway:
    def test_posts_to_the_channel_chat(self, provider_config):
        recorder = Recorder(body={"ok": True})
        gateway = TelegramGateway(provider_config, transport=recorder.transport)

        gateway.send("payments", "<b>paid</b>")

        assert recorder.last.url.path == "/botbot-pay/sendMessage"
        assert json.loads(recorder.last.content) == {
            "chat_id": "300",
            "text": "<b>paid</b>",
            "parse_mode": "HTML",
        }

    def test_unconfigured_channel(self, provider_config):
        recorder = Recorder(body={"ok": True})
        config = provider_config.model_copy(update={"telegram_fast": TelegramChannel()})
        gateway = TelegramGateway(config, transport=recorder.transport)

        with pytest.raises(UpstreamError, match="not configured"):
            gateway.send("fast", "hi")
        assert recorder.requests == []

    def test_unknown_channel(self, provider_config):
        gateway = TelegramGateway(provider_config, transport=Recorder().transport)

        with pytest.raises(UpstreamError, match="Unknown notification channel"):
            gateway.send("marketing", "hi")

    def test_ok_false_is_a_failure(self, provider_config):
        recorder = Recorder(body={"ok": False, "description": "chat not found"})
        gateway = TelegramGateway(provider_config, transport=recorder.transport)

        with pytest.raises(UpstreamError, match="chat not found"):
            gateway.send("orders", "hi")

    def test_http_error_status(self, provider_config):
        gateway = TelegramGateway(provider_config, transport=Recorder(status_code=500).transport)

        with pytest.raises(UpstreamError, match="HTTP 500"):
            gateway.send("orders", "hi")

    def test_transport_error(self, provider_config):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        gateway = TelegramGateway(provider_config, transport=httpx.MockTransport(refuse))

        with pytest.raises(UpstreamError, match="request failed"):
            gateway.send("orders", "hi")


# ===========================================================================
# SendGrid
# ===========================================================================


class TestSendGridEmailGateway:
    def test_sends_plain_text_mail(self, provider_config):
        recorder = Recorder(status_code=202)
        gateway = SendGridEmailGateway(provider_config, transport=recorder.transport)

        gateway.send("jane@example.com", "Subject", "Body")

        request = recorder.last
        assert request.headers["Authorization"] == "Bearer sg-key"
        payload = json.loads(request.content)
        assert payload["personalizations"] == [{"to": [{"email": "jane@example.com"}]}]
        assert payload["from"]["email"] == "orders@lockers.test"
        assert payload["content"] == [{"type": "text/plain", "value": "Body"}]

    def test_missing_api_key(self, provider_config):
        config = provider_config.model_copy(update={"sendgrid_api_key": ""})

        with pytest.raises(UpstreamError, match="not configured"):
            SendGridEmailGateway(config, transport=Recorder().transport).send("a@b.c", "s", "b")

    def test_provider_rejection(self, provider_config):
        gateway = SendGridEmailGateway(provider_config, transport=Recorder(status_code=401).transport)

        with pytest.raises(UpstreamError):
            gateway.send("jane@example.com", "Subject", "Body")


# ===========================================================================
# Twilio
# ===========================================================================


class TestTwilioSmsGateway:
    def test_sends_from_number(self, provider_config):
        recorder = Recorder(status_code=201, body={"sid": "SM42"})
        gateway = TwilioSmsGateway(provider_config, transport=recorder.transport)

        sid = gateway.send("+447123456789", "Your code is 123456")

        assert sid == "SM42"
        request = recorder.last
        assert request.url.path == "/2010-04-01/Accounts/AC123/Messages.json"
        assert request.headers["Authorization"].startswith("Basic ")
        form = parse_qs(request.content.decode())
        assert form == {
            "To": ["+447123456789"],
            "Body": ["Your code is 123456"],
            "From": ["+447000000000"],
        }

    def test_prefers_messaging_service(self, provider_config):
        recorder = Recorder(status_code=201, body={"sid": "SM42"})
        config = provider_config.model_copy(update={"twilio_messaging_service_sid": "MG1"})

        TwilioSmsGateway(config, transport=recorder.transport).send("+447123456789", "hi")

        form = parse_qs(recorder.last.content.decode())
        assert form["MessagingServiceSid"] == ["MG1"]
        assert "From" not in form

    def test_missing_credentials(self, provider_config):
        config = provider_config.model_copy(update={"twilio_auth_token": ""})

        with pytest.raises(UpstreamError, match="credentials"):
            TwilioSmsGateway(config, transport=Recorder().transport).send("+447123456789", "hi")

    def test_missing_sender(self, provider_config):
        config = provider_config.model_copy(update={"twilio_from_number": ""})

        with pytest.raises(UpstreamError, match="TWILIO_FROM_NUMBER"):
            TwilioSmsGateway(config, transport=Recorder().transport).send("+447123456789", "hi")

    def test_missing_destination(self, provider_config):
        with pytest.raises(UpstreamError, match="destination"):
            TwilioSmsGateway(provider_config, transport=Recorder().transport).send("", "hi")
