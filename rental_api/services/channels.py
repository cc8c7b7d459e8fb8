"""
Outbound channel senders for push, email and SMS notifications.

Push goes to the Expo push service, email over SMTP with aiosmtplib and SMS
through the Twilio REST API. Senders raise ChannelDeliveryError on failure;
the notification service records the failure and carries on.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, List, Optional
import logging

import aiosmtplib
import httpx
from jinja2 import Environment, DictLoader, select_autoescape

from rental_api.config import Settings, settings
from rental_api.models.notification import NotificationChannel

logger = logging.getLogger(__name__)


EMAIL_TEMPLATES = {
    "notification.subject": "{{ title }}",
    "notification.txt": (
        "Hello {{ full_name }},\n\n"
        "{{ message }}\n\n"
        "You can manage notification settings from the app.\n"
    ),
    "notification.html": (
        "<html><body>"
        "<p>Hello {{ full_name }},</p>"
        "<h3>{{ title }}</h3>"
        "<p>{{ message }}</p>"
        "<p style=\"color:#6b7280\">You can manage notification settings from the app.</p>"
        "</body></html>"
    ),
    "digest.subject": "Your {{ frequency }} summary: {{ items|length }} update{{ 's' if items|length != 1 else '' }}",
    "digest.txt": (
        "Hello {{ full_name }},\n\n"
        "Here is what happened since your last summary:\n\n"
        "{% for item in items %}- [{{ item.category }}] {{ item.title }}: {{ item.message }}\n{% endfor %}"
    ),
    "digest.html": (
        "<html><body>"
        "<p>Hello {{ full_name }},</p>"
        "<p>Here is what happened since your last summary:</p>"
        "<ul>{% for item in items %}"
        "<li><strong>{{ item.title }}</strong> <em>({{ item.category }})</em><br>{{ item.message }}</li>"
        "{% endfor %}</ul>"
        "</body></html>"
    ),
}

template_env = Environment(
    loader=DictLoader(EMAIL_TEMPLATES),
    autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
)


class ChannelDeliveryError(Exception):
    """Raised when a provider rejects or fails to accept a message."""

    def __init__(self, channel: NotificationChannel, detail: str):
        super().__init__(f"{channel.value} delivery failed: {detail}")
        self.channel = channel
        self.detail = detail


@dataclass
class OutboundMessage:
    """A rendered message ready for one channel."""

    channel: NotificationChannel
    recipients: List[str]
    title: str
    body: str
    html_body: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DeliveryReceipt:
    channel: NotificationChannel
    provider_ids: List[str] = field(default_factory=list)
    invalid_recipients: List[str] = field(default_factory=list)


def render_email(template: str, **context: Any) -> Dict[str, str]:
    """Render subject, text and HTML parts of an email template."""
    return {
        "subject": template_env.get_template(f"{template}.subject").render(**context).strip(),
        "text": template_env.get_template(f"{template}.txt").render(**context),
        "html": template_env.get_template(f"{template}.html").render(**context),
    }


class ChannelSender:
    """Base class for channel senders."""

    channel: NotificationChannel

    def __init__(self, config: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.dry_run = config.notifications_dry_run
        self.transport = transport

    async def send(self, message: OutboundMessage) -> DeliveryReceipt:
        if not message.recipients:
            raise ChannelDeliveryError(self.channel, "no recipients")
        if self.dry_run:
            logger.info(
                f"[dry-run] {self.channel.value} to {len(message.recipients)} recipient(s): {message.title}"
            )
            return DeliveryReceipt(channel=self.channel, provider_ids=["dry-run"])
        return await self._send(message)

    async def _send(self, message: OutboundMessage) -> DeliveryReceipt:
        raise NotImplementedError


class PushSender(ChannelSender):
    """Expo push notification sender."""

    channel = NotificationChannel.PUSH

    async def _send(self, message: OutboundMessage) -> DeliveryReceipt:
        payload = [
            {
                "to": token,
                "title": message.title,
                "body": message.body,
                "data": message.data,
                "sound": "default",
            }
            for token in message.recipients
        ]
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.config.expo_access_token:
            headers["Authorization"] = f"Bearer {self.config.expo_access_token}"

        try:
            async with httpx.AsyncClient(timeout=self.config.channel_request_timeout, transport=self.transport) as client:
                response = await client.post(self.config.expo_push_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise ChannelDeliveryError(self.channel, str(e))

        if response.status_code != 200:
            raise ChannelDeliveryError(self.channel, f"Expo API error: {response.status_code} - {response.text}")

        receipt = DeliveryReceipt(channel=self.channel)
        tickets = response.json().get("data", [])
        for token, ticket in zip(message.recipients, tickets):
            if ticket.get("status") == "ok":
                receipt.provider_ids.append(ticket.get("id", ""))
            elif ticket.get("details", {}).get("error") == "DeviceNotRegistered":
                receipt.invalid_recipients.append(token)
            else:
                logger.warning(f"Expo rejected push ticket: {ticket.get('message')}")

        if not receipt.provider_ids:
            raise ChannelDeliveryError(self.channel, "no push tickets accepted")

        logger.info(f"Push sent to {len(receipt.provider_ids)} device(s)")
        return receipt


class EmailSender(ChannelSender):
    """SMTP email sender."""

    channel = NotificationChannel.EMAIL

    async def _send(self, message: OutboundMessage) -> DeliveryReceipt:
        mime = MIMEMultipart("alternative")
        mime["Subject"] = message.title
        mime["From"] = self.config.email_from_address
        mime["To"] = ", ".join(message.recipients)
        mime.attach(MIMEText(message.body, "plain"))
        if message.html_body:
            mime.attach(MIMEText(message.html_body, "html"))

        try:
            await aiosmtplib.send(
                mime,
                hostname=self.config.smtp_host,
                port=self.config.smtp_port,
                username=self.config.smtp_username,
                password=self.config.smtp_password,
                use_tls=self.config.smtp_use_tls,
                start_tls=self.config.smtp_start_tls and not self.config.smtp_use_tls,
                timeout=self.config.smtp_timeout,
            )
        except aiosmtplib.SMTPException as e:
            raise ChannelDeliveryError(self.channel, str(e))
        except OSError as e:
            raise ChannelDeliveryError(self.channel, f"SMTP connection failed: {e}")

        logger.info(f"Email sent to {', '.join(message.recipients)}")
        return DeliveryReceipt(channel=self.channel, provider_ids=[mime.get("Message-ID", "")])


class SmsSender(ChannelSender):
    """Twilio SMS sender."""

    channel = NotificationChannel.SMS

    async def _send(self, message: OutboundMessage) -> DeliveryReceipt:
        if not (self.config.twilio_account_sid and self.config.twilio_auth_token and self.config.twilio_from_number):
            raise ChannelDeliveryError(self.channel, "Twilio credentials are not configured")

        url = f"{self.config.twilio_api_base}/Accounts/{self.config.twilio_account_sid}/Messages.json"
        auth = (self.config.twilio_account_sid, self.config.twilio_auth_token)
        receipt = DeliveryReceipt(channel=self.channel)

        async with httpx.AsyncClient(timeout=self.config.channel_request_timeout, transport=self.transport) as client:
            for phone_number in message.recipients:
                data = {
                    "From": self.config.twilio_from_number,
                    "To": phone_number,
                    "Body": f"{message.title}: {message.body}",
                }
                try:
                    response = await client.post(url, data=data, auth=auth)
                except httpx.HTTPError as e:
                    raise ChannelDeliveryError(self.channel, str(e))

                if response.status_code != 201:
                    raise ChannelDeliveryError(
                        self.channel, f"Twilio API error: {response.status_code} - {response.text}"
                    )
                receipt.provider_ids.append(response.json().get("sid", ""))

        logger.info(f"SMS sent to {len(receipt.provider_ids)} number(s)")
        return receipt


class ChannelDispatcher:
    """Routes an outbound message to the sender registered for its channel."""

    def __init__(self, senders: Dict[NotificationChannel, ChannelSender]):
        self.senders = senders

    async def dispatch(self, message: OutboundMessage) -> DeliveryReceipt:
        sender = self.senders.get(message.channel)
        if sender is None:
            raise ChannelDeliveryError(message.channel, "no sender configured")
        return await sender.send(message)


def build_dispatcher(config: Optional[Settings] = None) -> ChannelDispatcher:
    config = config or settings
    return ChannelDispatcher({
        NotificationChannel.PUSH: PushSender(config),
        NotificationChannel.EMAIL: EmailSender(config),
        NotificationChannel.SMS: SmsSender(config),
    })


@lru_cache()
def get_dispatcher() -> ChannelDispatcher:
    """Process-wide dispatcher built from the application settings."""
    return build_dispatcher(settings)
