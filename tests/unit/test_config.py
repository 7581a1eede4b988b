"""Unit tests for configuration parsing."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from src.config import Settings, parse_duration


class TestParseDuration:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("15m", timedelta(minutes=15)),
            ("1h", timedelta(hours=1)),
            ("7d", timedelta(days=7)),
            ("30s", timedelta(seconds=30)),
            ("900", timedelta(seconds=900)),
            (" 5m ", timedelta(minutes=5)),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["", "m", "15x", "-5m", "0", "1.5h"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_duration(value)


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("JWT_EXPIRE_IN", "REFRESH_EXPIRE_DAYS", "JWT_ALGORITHM"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.jwt_algorithm == "RS256"
        assert settings.access_token_ttl == timedelta(minutes=15)
        assert settings.refresh_token_ttl == timedelta(days=7)
        assert settings.oauth_link_requires_verified_email is True
        assert settings.mail_enabled is False

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("JWT_EXPIRE_IN", "1h")
        monkeypatch.setenv("REFRESH_EXPIRE_DAYS", "30")
        monkeypatch.setenv("OAUTH_LINK_REQUIRES_VERIFIED_EMAIL", "false")

        settings = Settings(_env_file=None)

        assert settings.access_token_ttl == timedelta(hours=1)
        assert settings.refresh_token_ttl == timedelta(days=30)
        assert settings.oauth_link_requires_verified_email is False

    def test_rejects_bad_access_ttl(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, jwt_expire_in="soon")

    def test_rejects_non_positive_refresh_days(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, refresh_expire_days=0)
