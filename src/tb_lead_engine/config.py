"""Environment-based configuration."""

import os
from pathlib import Path


class Settings:
    """Engine configuration loaded from environment variables."""

    def __init__(self):
        self.data_dir = Path(os.getenv("TB_DATA_DIR", str(Path.home() / ".tb-lead-engine")))
        self.db_path = Path(os.getenv("TB_DATABASE_PATH", str(self.data_dir / "crm.db")))
        self.company_name = os.getenv("TB_COMPANY_NAME", "T&B Dock")
        self.log_level = os.getenv("TB_LOG_LEVEL", "INFO").upper()

        # Tick scheduling
        self.tick_interval = int(os.getenv("TB_TICK_INTERVAL", "300"))
        self.tick_workers = max(1, int(os.getenv("TB_TICK_WORKERS", "1")))

        # Email (SendGrid)
        self.sendgrid_api_key = os.getenv("SENDGRID_API_KEY", "")
        self.from_email = os.getenv("FROM_EMAIL", "noreply@tbdock.com")
        self.from_name = os.getenv("FROM_NAME", self.company_name)

        # SMS (Twilio)
        self.twilio_account_sid = os.getenv("TWILIO_ACCOUNT_SID", "")
        self.twilio_auth_token = os.getenv("TWILIO_AUTH_TOKEN", "")
        self.twilio_phone_number = os.getenv("TWILIO_PHONE_NUMBER", "+12085551234")

    @property
    def email_configured(self) -> bool:
        return bool(self.sendgrid_api_key)

    @property
    def sms_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token)


_settings = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings():
    """Drop cached settings so the environment is read again."""
    global _settings
    _settings = None


class _SettingsProxy:
    """Lazy proxy so settings aren't loaded until first access."""

    def __getattr__(self, name):
        return getattr(get_settings(), name)


settings = _SettingsProxy()
