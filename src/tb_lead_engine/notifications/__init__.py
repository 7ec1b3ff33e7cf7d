"""Email and SMS delivery."""

from .notifier import (
    Notifier,
    SendGridEmailNotifier,
    TwilioSMSNotifier,
    DisabledNotifier,
    RecordingNotifier,
    build_email_notifier,
    build_sms_notifier,
)

__all__ = [
    "Notifier",
    "SendGridEmailNotifier",
    "TwilioSMSNotifier",
    "DisabledNotifier",
    "RecordingNotifier",
    "build_email_notifier",
    "build_sms_notifier",
]
