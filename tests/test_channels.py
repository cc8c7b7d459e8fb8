"""
Tests for the push, email and SMS senders against stubbed provider responses.
"""

import json
from typing import List
from urllib.parse import parse_qs

import aiosmtplib
import httpx
import pytest

from rental_api.config import settings
from rental_api.models.notification import NotificationChannel
from rental_api.services.channels import (
    ChannelDeliveryError,
    EmailSender,
    OutboundMessage,
    PushSender,
    SmsSender,
    build_dispatcher,
)


LIVE_SETTINGS = settings.model_copy(update={
    "notifications_dry_run": False,
    "twilio_account_sid": "AC0123456789",
    "twilio_auth_token": "twilio-secret",
    "twilio_from_number": "+15005550006",
    "expo_access_token": "expo-secret",
})

PHONE_TOKEN = "ExponentPushToken[lina-phone]"
TABLET_TOKEN = "ExponentPushToken[lina-tablet]"


def push_message(*tokens: str) -> OutboundMessage:
    return OutboundMessage(
        NotificationChannel.PUSH, list(tokens), "Rent Payment Reminder", "Your rent is due in 3 days",
        data={"transaction_id": "abc"},
    )


def expo_transport(requests: List[httpx.Request], status_code: int = 200, tickets=None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json={"data": tickets or []})
    return httpx.MockTransport(handler)


class TestPushSender:
    """Test Expo push ticket handling."""

    @pytest.mark.asyncio
    async def test_tickets_split_into_accepted_and_unregistered(self):
        requests: List[httpx.Request] = []
        tickets = [
            {"status": "ok", "id": "ticket-1"},
            {
                "status": "error",
                "message": "not a registered push notification recipient",
                "details": {"error": "DeviceNotRegistered"},
            },
        ]
        sender = PushSender(LIVE_SETTINGS, transport=expo_transport(requests, tickets=tickets))

        receipt = await sender.send(push_message(PHONE_TOKEN, TABLET_TOKEN))

        assert receipt.provider_ids == ["ticket-1"]
        assert receipt.invalid_recipients == [TABLET_TOKEN]

        payload = json.loads(requests[0].content)
        assert [item["to"] for item in payload] == [PHONE_TOKEN, TABLET_TOKEN]
        assert payload[0]["data"] == {"transaction_id": "abc"}
        assert requests[0].headers["Authorization"] == "Bearer expo-secret"

    @pytest.mark.asyncio
    async def test_no_accepted_ticket_is_a_failure(self):
        tickets = [{"status": "error", "message": "invalid credentials", "details": {"error": "InvalidCredentials"}}]
        sender = PushSender(LIVE_SETTINGS, transport=expo_transport([], tickets=tickets))

        with pytest.raises(ChannelDeliveryError):
            await sender.send(push_message(PHONE_TOKEN))

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        sender = PushSender(LIVE_SETTINGS, transport=expo_transport([], status_code=503))

        with pytest.raises(ChannelDeliveryError) as exc_info:
            await sender.send(push_message(PHONE_TOKEN))
        assert "503" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_dry_run_skips_network(self):
        requests: List[httpx.Request] = []
        sender = PushSender(
            settings.model_copy(update={"notifications_dry_run": True}),
            transport=expo_transport(requests),
        )

        receipt = await sender.send(push_message(PHONE_TOKEN))

        assert receipt.provider_ids == ["dry-run"]
        assert requests == []

    @pytest.mark.asyncio
    async def test_no_recipients(self):
        with pytest.raises(ChannelDeliveryError):
            await PushSender(LIVE_SETTINGS).send(push_message())


class TestSmsSender:
    """Test Twilio message creation."""

    def _message(self) -> OutboundMessage:
        return OutboundMessage(
            NotificationChannel.SMS, ["+962791234567"], "Maintenance Update", "Request #12: scheduled"
        )

    @pytest.mark.asyncio
    async def test_created_message(self):
        requests: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, json={"sid": "SM123"})

        sender = SmsSender(LIVE_SETTINGS, transport=httpx.MockTransport(handler))
        receipt = await sender.send(self._message())

        assert receipt.provider_ids == ["SM123"]
        assert requests[0].url.path.endswith("/Accounts/AC0123456789/Messages.json")
        assert requests[0].headers["Authorization"].startswith("Basic ")
        form = parse_qs(requests[0].content.decode())
        assert form["To"] == ["+962791234567"]
        assert form["From"] == ["+15005550006"]
        assert form["Body"] == ["Maintenance Update: Request #12: scheduled"]

    @pytest.mark.asyncio
    async def test_rejected_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"code": 21211, "message": "Invalid 'To' Phone Number"})

        sender = SmsSender(LIVE_SETTINGS, transport=httpx.MockTransport(handler))

        with pytest.raises(ChannelDeliveryError) as exc_info:
            await sender.send(self._message())
        assert "400" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_unreachable_provider(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        sender = SmsSender(LIVE_SETTINGS, transport=httpx.MockTransport(handler))

        with pytest.raises(ChannelDeliveryError):
            await sender.send(self._message())

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        config = LIVE_SETTINGS.model_copy(update={"twilio_auth_token": None})

        with pytest.raises(ChannelDeliveryError) as exc_info:
            await SmsSender(config).send(self._message())
        assert "not configured" in exc_info.value.detail


class TestEmailSender:
    """Test SMTP delivery."""

    def _message(self) -> OutboundMessage:
        return OutboundMessage(
            NotificationChannel.EMAIL, ["lina@example.com"], "Lease Expiry Reminder",
            "Your lease expires in 30 days", html_body="<p>Your lease expires in 30 days</p>",
        )

    @pytest.mark.asyncio
    async def test_sends_multipart_email(self, monkeypatch):
        sent = []

        async def fake_send(message, **kwargs):
            sent.append((message, kwargs))
            return {}, "OK"

        monkeypatch.setattr(aiosmtplib, "send", fake_send)

        receipt = await EmailSender(LIVE_SETTINGS).send(self._message())

        mime, options = sent[0]
        assert receipt.channel == NotificationChannel.EMAIL
        assert mime["To"] == "lina@example.com"
        assert mime["Subject"] == "Lease Expiry Reminder"
        assert [part.get_content_type() for part in mime.get_payload()] == ["text/plain", "text/html"]
        assert options["hostname"] == LIVE_SETTINGS.smtp_host

    @pytest.mark.asyncio
    async def test_smtp_error(self, monkeypatch):
        async def fake_send(message, **kwargs):
            raise aiosmtplib.SMTPResponseException(550, "Mailbox unavailable")

        monkeypatch.setattr(aiosmtplib, "send", fake_send)

        with pytest.raises(ChannelDeliveryError) as exc_info:
            await EmailSender(LIVE_SETTINGS).send(self._message())
        assert "Mailbox unavailable" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_connection_refused(self, monkeypatch):
        async def fake_send(message, **kwargs):
            raise ConnectionRefusedError(111, "Connection refused")

        monkeypatch.setattr(aiosmtplib, "send", fake_send)

        with pytest.raises(ChannelDeliveryError) as exc_info:
            await EmailSender(LIVE_SETTINGS).send(self._message())
        assert exc_info.value.detail.startswith("SMTP connection failed")


class TestChannelDispatcher:
    """Test routing messages to senders."""

    @pytest.mark.asyncio
    async def test_dispatch_uses_channel_sender(self, monkeypatch):
        async def fake_send(message, **kwargs):
            return {}, "OK"

        monkeypatch.setattr(aiosmtplib, "send", fake_send)
        dispatcher = build_dispatcher(LIVE_SETTINGS)

        receipt = await dispatcher.dispatch(OutboundMessage(
            NotificationChannel.EMAIL, ["lina@example.com"], "Welcome", "Welcome aboard"
        ))

        assert receipt.channel == NotificationChannel.EMAIL
        assert set(dispatcher.senders) == set(NotificationChannel)
