"""Tests for email and SMS delivery."""

from unittest.mock import patch, MagicMock

import pytest
import requests

from tb_lead_engine.config import Settings
from tb_lead_engine.drip_campaigns.templates import RenderedTemplate
from tb_lead_engine.notifications.notifier import (
    SendGridEmailNotifier,
    TwilioSMSNotifier,
    DisabledNotifier,
    RecordingNotifier,
    SENDGRID_URL,
    normalize_phone,
    sms_body,
    SMS_MAX_LENGTH,
    build_email_notifier,
    build_sms_notifier,
)

MESSAGE = RenderedTemplate(subject="Hello", html="<p>Hi</p>", text="Hi")


def ok_response(status_code=202):
    response = MagicMock()
    response.ok = 200 <= status_code < 300
    response.status_code = status_code
    response.text = "" if response.ok else "bad request"
    return response


class TestSendGridEmailNotifier:
    """Tests for SendGridEmailNotifier."""

    def setup_method(self):
        self.notifier = SendGridEmailNotifier("SG.key", "noreply@tbdock.com", "T&B Dock")

    @patch("tb_lead_engine.notifications.notifier.requests.post")
    def test_send(self, mock_post):
        mock_post.return_value = ok_response()

        assert self.notifier.send("dana@example.com", MESSAGE)

        args, kwargs = mock_post.call_args
        assert args[0] == SENDGRID_URL
        assert kwargs["headers"]["Authorization"] == "Bearer SG.key"
        payload = kwargs["json"]
        assert payload["personalizations"][0]["to"] == [{"email": "dana@example.com"}]
        assert payload["personalizations"][0]["subject"] == "Hello"
        assert payload["from"] == {"email": "noreply@tbdock.com", "name": "T&B Dock"}
        assert [c["type"] for c in payload["content"]] == ["text/plain", "text/html"]

    @patch("tb_lead_engine.notifications.notifier.requests.post")
    def test_api_error_returns_false(self, mock_post):
        mock_post.return_value = ok_response(400)
        assert not self.notifier.send("dana@example.com", MESSAGE)

    @patch("tb_lead_engine.notifications.notifier.requests.post")
    def test_network_error_returns_false(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("no route")
        assert not self.notifier.send("dana@example.com", MESSAGE)


class TestTwilioSMSNotifier:
    """Tests for TwilioSMSNotifier."""

    def setup_method(self):
        self.notifier = TwilioSMSNotifier("AC123", "secret", "+12085551234")

    @pytest.mark.parametrize("number,expected", [
        ("208-555-0101", "+12085550101"),
        ("(208) 555 0101", "+12085550101"),
        ("+442071838750", "+442071838750"),
    ])
    def test_normalize_phone(self, number, expected):
        assert normalize_phone(number) == expected

    @patch("tb_lead_engine.notifications.notifier.requests.post")
    def test_send(self, mock_post):
        mock_post.return_value = ok_response(201)

        assert self.notifier.send("208-555-0101", MESSAGE)

        args, kwargs = mock_post.call_args
        assert "AC123" in args[0]
        assert kwargs["auth"] == ("AC123", "secret")
        assert kwargs["data"] == {"To": "+12085550101", "From": "+12085551234", "Body": "Hi"}

    @patch("tb_lead_engine.notifications.notifier.requests.post")
    def test_failure_returns_false(self, mock_post):
        mock_post.side_effect = requests.Timeout("slow")
        assert not self.notifier.send("2085550101", MESSAGE)

    @patch("tb_lead_engine.notifications.notifier.requests.post")
    def test_long_body_shortened_for_sms(self, mock_post):
        mock_post.return_value = ok_response(201)
        paragraph = "We build and repair docks, boat lifts and seawalls on every lake in the area. "
        long_message = RenderedTemplate(
            subject="Welcome",
            html="<p>ignored</p>",
            text="Hi Dana,\n\n" + paragraph * 10 + "\n\nBest,\nT&B Dock",
        )

        assert self.notifier.send("2085550101", long_message)

        body = mock_post.call_args.kwargs["data"]["Body"]
        assert len(body) <= SMS_MAX_LENGTH
        assert body.startswith("Hi Dana, We build")
        assert body.endswith("...")
        assert "\n" not in body

    def test_sms_body_keeps_short_text(self):
        short = RenderedTemplate(subject="s", html="", text="Hi Dana,\n\nSee you Tuesday.")
        assert sms_body(short) == "Hi Dana, See you Tuesday."


class TestFactories:
    """Tests for building notifiers from settings."""

    def test_unconfigured_channels_are_disabled(self, monkeypatch):
        for name in ("SENDGRID_API_KEY", "TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings()

        email = build_email_notifier(settings)
        sms = build_sms_notifier(settings)

        assert isinstance(email, DisabledNotifier)
        assert isinstance(sms, DisabledNotifier)
        assert not email.send("dana@example.com", MESSAGE)

    def test_configured_channels(self, monkeypatch):
        monkeypatch.setenv("SENDGRID_API_KEY", "SG.key")
        monkeypatch.setenv("FROM_EMAIL", "hello@tbdock.com")
        monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC123")
        monkeypatch.setenv("TWILIO_AUTH_TOKEN", "secret")
        settings = Settings()

        email = build_email_notifier(settings)
        sms = build_sms_notifier(settings)

        assert isinstance(email, SendGridEmailNotifier)
        assert email.from_email == "hello@tbdock.com"
        assert isinstance(sms, TwilioSMSNotifier)
        assert settings.email_configured and settings.sms_configured


class TestRecordingNotifier:

    def test_records(self):
        notifier = RecordingNotifier()
        assert notifier.send("dana@example.com", MESSAGE)
        assert notifier.sent == [("dana@example.com", MESSAGE)]

    def test_failing(self):
        notifier = RecordingNotifier(succeed=False)
        assert not notifier.send("dana@example.com", MESSAGE)
        assert notifier.sent == []
