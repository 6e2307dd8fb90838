"""Unit tests for notify/mailer.py and the Settings validators it depends on.

Covers:
- unconfigured SMTP logs and returns False without opening a connection
- configured SMTP sends one message with the right envelope and STARTTLS
- an empty destination is rejected
- SECRET_KEY / OTP_LENGTH validation in core/config.py
"""

from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from core.config import Settings
from notify.mailer import MailDispatcher

_KEY = "k" * 32


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, secret_key=_KEY, **overrides)


class TestMailDispatcher:
    def test_unconfigured_does_not_connect(self):
        mailer = MailDispatcher(_settings())
        with patch("notify.mailer.smtplib.SMTP") as smtp:
            assert mailer.send("a@x.com", "subject", "Your verification code is: 123456") is False
            smtp.assert_not_called()

    def test_configured_sends(self):
        mailer = MailDispatcher(
            _settings(smtp_host="smtp.example.com", smtp_user="bot", smtp_password="pw", smtp_from="bot@example.com")
        )
        server = MagicMock()
        with patch("notify.mailer.smtplib.SMTP") as smtp:
            smtp.return_value.__enter__.return_value = server
            assert mailer.send("a@x.com", "Your verification code (login)", "body") is True

        smtp.assert_called_once_with("smtp.example.com", 587, timeout=10.0)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("bot", "pw")
        msg = server.send_message.call_args.args[0]
        assert msg["To"] == "a@x.com"
        assert msg["From"] == "bot@example.com"
        assert msg["Subject"] == "Your verification code (login)"

    def test_tls_can_be_disabled(self):
        mailer = MailDispatcher(
            _settings(smtp_host="localhost", smtp_user="bot", smtp_password="pw", smtp_use_tls=False)
        )
        server = MagicMock()
        with patch("notify.mailer.smtplib.SMTP") as smtp:
            smtp.return_value.__enter__.return_value = server
            mailer.send("a@x.com", "s", "b")
        server.starttls.assert_not_called()

    def test_empty_destination_rejected(self):
        with pytest.raises(ValueError):
            MailDispatcher(_settings()).send("", "s", "b")


class TestSettings:
    def test_short_secret_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, secret_key="too-short")

    def test_missing_secret_allowed(self):
        assert Settings(_env_file=None, secret_key="").secret_key == ""

    @pytest.mark.parametrize("length", [3, 11])
    def test_otp_length_bounds(self, length):
        with pytest.raises(ValidationError):
            _settings(otp_length=length)

    def test_smtp_configured(self):
        assert not _settings().smtp_configured
        assert _settings(smtp_host="h", smtp_user="u", smtp_password="p").smtp_configured
