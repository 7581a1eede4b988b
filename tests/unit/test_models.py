"""Unit tests for Pydantic models."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from pydantic import ValidationError

from src.models.auth import IssuedSession, OAuthAssertion
from src.models.user import AccountStatus, RefreshToken, Role, User


def _token(expires_at: datetime, revoked: bool = False) -> RefreshToken:
    return RefreshToken(
        id=uuid4(),
        user_id=uuid4(),
        token_hash="a" * 64,
        expires_at=expires_at,
        revoked=revoked,
        created_at=expires_at - timedelta(days=7),
    )


class TestRefreshToken:
    """Tests for derived refresh token expiry."""

    def test_usable_before_expiry(self):
        now = datetime(2026, 1, 15, tzinfo=timezone.utc)
        token = _token(now + timedelta(seconds=1))

        assert token.is_expired(now) is False
        assert token.is_usable(now) is True

    def test_still_usable_at_exact_expiry(self):
        now = datetime(2026, 1, 15, tzinfo=timezone.utc)

        assert _token(now).is_usable(now) is True

    def test_expired_after_deadline(self):
        now = datetime(2026, 1, 15, tzinfo=timezone.utc)
        token = _token(now - timedelta(microseconds=1))

        assert token.is_expired(now) is True
        assert token.is_usable(now) is False

    def test_revoked_is_not_usable(self):
        now = datetime(2026, 1, 15, tzinfo=timezone.utc)

        assert _token(now + timedelta(days=1), revoked=True).is_usable(now) is False


class TestUser:
    def test_role_name(self):
        now = datetime.now(timezone.utc)
        role = Role(id=uuid4(), name="ADMIN")
        user = User(id=uuid4(), role_id=role.id, role=role, created_at=now, updated_at=now)

        assert user.role_name == "ADMIN"
        assert user.status == AccountStatus.UNACTIVATED
        assert user.is_active is False

    def test_status_from_text(self):
        now = datetime.now(timezone.utc)
        user = User(id=uuid4(), status="active", created_at=now, updated_at=now)

        assert user.is_active is True
        assert user.role_name is None


class TestOAuthAssertion:
    def test_requires_provider_identity(self):
        with pytest.raises(ValidationError):
            OAuthAssertion(provider="", provider_id="1")
        with pytest.raises(ValidationError):
            OAuthAssertion(provider="google", provider_id="")

    def test_email_is_trimmed(self):
        assert OAuthAssertion(provider="g", provider_id="1", email=" a@x.com ").email == "a@x.com"


class TestIssuedSession:
    def test_access_lifetime_must_be_positive(self):
        with pytest.raises(ValidationError):
            IssuedSession(
                access_token="a",
                refresh_token="r",
                refresh_expires_at=datetime.now(timezone.utc),
                access_expires_in=0,
            )

    def test_token_type_defaults_to_bearer(self):
        session = IssuedSession(
            access_token="a",
            refresh_token="r",
            refresh_expires_at=datetime.now(timezone.utc),
            access_expires_in=900,
        )

        assert session.token_type == "bearer"
