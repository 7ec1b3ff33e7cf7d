"""Outbound email and SMS delivery for sequence steps.

Senders are best-effort: every failure is logged and reported as False so
the caller can retry on its next tick.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import List, Tuple

import requests

from ..drip_campaigns.templates import RenderedTemplate

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"
TWILIO_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"

# Two concatenated SMS segments
SMS_MAX_LENGTH = 320


class Notifier(ABC):
    """Something that can deliver a rendered template to a destination."""

    channel: str = ""

    @abstractmethod
    def send(self, destination: str, rendered: RenderedTemplate) -> bool:
        """Deliver the message. Returns True only on confirmed acceptance."""


class SendGridEmailNotifier(Notifier):
    """Send email through the SendGrid v3 API."""

    channel = "email"

    def __init__(self, api_key: str, from_email: str, from_name: str = "T&B Dock", timeout: int = 30):
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name
        self.timeout = timeout

    def send(self, destination: str, rendered: RenderedTemplate) -> bool:
        payload = {
            "personalizations": [{"to": [{"email": destination}], "subject": rendered.subject}],
            "from": {"email": self.from_email, "name": self.from_name},
            "content": [
                {"type": "text/plain", "value": rendered.text},
                {"type": "text/html", "value": rendered.html},
            ],
        }

        try:
            response = requests.post(
                SENDGRID_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"SendGrid request failed for {destination}: {e}")
            return False

        if not response.ok:
            logger.error(f"SendGrid API error {response.status_code}: {response.text}")
            return False

        logger.info(f"Email sent to {destination}: {rendered.subject}")
        return True


def sms_body(rendered: RenderedTemplate, limit: int = SMS_MAX_LENGTH) -> str:
    """Plain text squeezed onto one line and cut at a word boundary to fit an SMS."""
    text = " ".join(rendered.text.split())
    if len(text) <= limit:
        return text
    cut = text[:limit - 3].rsplit(" ", 1)[0]
    return cut.rstrip(",.;:") + "..."


def normalize_phone(number: str) -> str:
    """E.164-ish form: keep a leading + as given, else assume North America."""
    if number.startswith("+"):
        return number
    return f"+1{re.sub(r'[^0-9]', '', number)}"


class TwilioSMSNotifier(Notifier):
    """Send SMS through the Twilio Messages API."""

    channel = "sms"

    def __init__(self, account_sid: str, auth_token: str, from_number: str, timeout: int = 30):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout

    def send(self, destination: str, rendered: RenderedTemplate) -> bool:
        to = normalize_phone(destination)

        try:
            response = requests.post(
                TWILIO_URL.format(sid=self.account_sid),
                data={"To": to, "From": self.from_number, "Body": sms_body(rendered)},
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Twilio request failed for {to}: {e}")
            return False

        if not response.ok:
            logger.error(f"Twilio API error {response.status_code}: {response.text}")
            return False

        logger.info(f"SMS sent to {to}")
        return True


class DisabledNotifier(Notifier):
    """Stand-in used when a channel has no credentials; nothing is delivered."""

    def __init__(self, channel: str):
        self.channel = channel

    def send(self, destination: str, rendered: RenderedTemplate) -> bool:
        logger.warning(f"{self.channel} not configured - would send to {destination}: {rendered.subject}")
        return False


class RecordingNotifier(Notifier):
    """Accepts every message and keeps it in memory (dry runs and demos)."""

    def __init__(self, channel: str = "email", succeed: bool = True):
        self.channel = channel
        self.succeed = succeed
        self.sent: List[Tuple[str, RenderedTemplate]] = []

    def send(self, destination: str, rendered: RenderedTemplate) -> bool:
        if not self.succeed:
            return False
        self.sent.append((destination, rendered))
        logger.info(f"[dry run] {self.channel} to {destination}: {rendered.subject}")
        return True


def build_email_notifier(settings) -> Notifier:
    """Email notifier for the given settings."""
    if not settings.sendgrid_api_key:
        return DisabledNotifier("email")
    return SendGridEmailNotifier(
        api_key=settings.sendgrid_api_key,
        from_email=settings.from_email,
        from_name=settings.from_name,
    )


def build_sms_notifier(settings) -> Notifier:
    """SMS notifier for the given settings."""
    if not (settings.twilio_account_sid and settings.twilio_auth_token):
        return DisabledNotifier("sms")
    return TwilioSMSNotifier(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        from_number=settings.twilio_phone_number,
    )
