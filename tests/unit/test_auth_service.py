"""Unit tests for AuthService.

Login, OAuth login, refresh/logout, current-user lookup, and the full
register -> activate -> login -> rotate -> reuse scenario.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from src.config import Settings
from src.models.auth import AccessClaims, ClientMeta, OAuthAssertion
from src.models.user import AccountStatus
from src.services.auth_service import AuthService
from src.services.email_service import EmailService
from src.services.errors import (
    HashFormatError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    TokenInvalidError,
    UserNotFoundError,
)
from src.services.token_service import TokenSigner

TEST_PASSWORD = "correct-horse-battery"


# ---------------------------------------------------------------------------
# login
# ---------------------------------------------------------------------------

class TestLogin:
    """Tests for password login."""

    async def test_success_returns_summary_and_session(
        self, auth_service, active_user, session_service
    ):
        result = await auth_service.login(
            "alice@example.com", TEST_PASSWORD, ClientMeta(ip="198.51.100.4")
        )

        assert result.user.id == active_user.id
        assert result.user.email == "alice@example.com"
        assert result.user.name == "Alice"
        assert result.user.role == "USER"
        claims = session_service.verify_access_token(result.session.access_token)
        assert claims.sub == str(active_user.id)

    async def test_wrong_password(self, auth_service, active_user, repository):
        with pytest.raises(InvalidCredentialsError):
            await auth_service.login("alice@example.com", "wrong-password")

        assert await repository.list_refresh_tokens_for_user(active_user.id) == []

    async def test_unknown_email(self, auth_service):
        with pytest.raises(InvalidCredentialsError):
            await auth_service.login("nobody@example.com", TEST_PASSWORD)

    async def test_oauth_only_account_has_no_password(self, auth_service):
        await auth_service.identity.resolve_oauth_user(
            OAuthAssertion(
                provider="github",
                provider_id="42",
                email="octo@example.com",
                email_verified=True,
            )
        )

        with pytest.raises(InvalidCredentialsError):
            await auth_service.login("octo@example.com", TEST_PASSWORD)

    async def test_unactivated_account_rejected_generically(self, auth_service):
        await auth_service.register("bob@example.com", TEST_PASSWORD, "Bob")

        with pytest.raises(InvalidCredentialsError) as exc_info:
            await auth_service.login("bob@example.com", TEST_PASSWORD)
        assert exc_info.value.message == "Invalid credentials"

    async def test_corrupt_hash_is_integrity_fault(
        self, auth_service, repository, active_user
    ):
        await repository.update_user(active_user.id, password_hash="not-a-bcrypt-hash")

        with pytest.raises(HashFormatError):
            await auth_service.login("alice@example.com", TEST_PASSWORD)

    async def test_long_wrong_password_is_invalid_credentials(
        self, auth_service, active_user
    ):
        with pytest.raises(InvalidCredentialsError):
            await auth_service.login("alice@example.com", "p" * 80)

    async def test_long_password_register_activate_login(self, auth_service, notifier):
        long_password = "p" * 80
        user = await auth_service.register("long@example.com", long_password, "Long")
        await auth_service.activate(user.id, notifier.send_activation_email.call_args.args[2])

        result = await auth_service.login("long@example.com", long_password)

        assert result.user.id == user.id
        with pytest.raises(InvalidCredentialsError):
            await auth_service.login("long@example.com", "p" * 79)


# ---------------------------------------------------------------------------
# OAuth login
# ---------------------------------------------------------------------------

class TestLoginWithOAuth:
    """Tests for login_with_oauth."""

    async def test_creates_user_and_issues_session(self, auth_service, repository):
        assertion = OAuthAssertion(
            provider="google",
            provider_id="g-1",
            email="erin@example.com",
            email_verified=True,
            name="Erin",
        )

        result = await auth_service.login_with_oauth(assertion, ClientMeta(user_agent="ua"))

        assert result.user.email == "erin@example.com"
        assert result.user.role == "USER"
        tokens = await repository.list_refresh_tokens_for_user(result.user.id)
        assert len(tokens) == 1
        assert tokens[0].user_agent == "ua"

    async def test_repeat_login_same_user_new_session(self, auth_service):
        assertion = OAuthAssertion(provider="google", provider_id="g-1")

        first = await auth_service.login_with_oauth(assertion)
        second = await auth_service.login_with_oauth(assertion)

        assert first.user.id == second.user.id
        assert first.session.refresh_token != second.session.refresh_token


# ---------------------------------------------------------------------------
# refresh / logout / current user
# ---------------------------------------------------------------------------

class TestSessions:
    """Tests for refresh, logout, logout_everywhere, and get_current_user."""

    async def test_refresh_rotates(self, auth_service, active_user):
        login = await auth_service.login("alice@example.com", TEST_PASSWORD)

        refreshed = await auth_service.refresh(login.session.refresh_token)

        assert refreshed.refresh_token != login.session.refresh_token

    async def test_logout_then_refresh_fails(self, auth_service, active_user):
        login = await auth_service.login("alice@example.com", TEST_PASSWORD)

        await auth_service.logout(login.session.refresh_token)

        with pytest.raises(InvalidRefreshTokenError):
            await auth_service.refresh(login.session.refresh_token)

    async def test_logout_unknown_token_is_silent(self, auth_service):
        await auth_service.logout("never-issued")

    async def test_logout_everywhere(self, auth_service, active_user, repository):
        await auth_service.login("alice@example.com", TEST_PASSWORD)
        await auth_service.login("alice@example.com", TEST_PASSWORD)

        assert await auth_service.logout_everywhere(active_user.id) == 2

        tokens = await repository.list_refresh_tokens_for_user(active_user.id)
        assert all(t.revoked for t in tokens)

    async def test_get_current_user(self, auth_service, active_user):
        login = await auth_service.login("alice@example.com", TEST_PASSWORD)

        current = await auth_service.get_current_user(login.session.access_token)

        assert current.id == active_user.id
        assert current.email == "alice@example.com"
        assert current.role == "USER"

    async def test_get_current_user_deleted(self, auth_service, active_user, repository):
        login = await auth_service.login("alice@example.com", TEST_PASSWORD)
        del repository.users[active_user.id]

        with pytest.raises(UserNotFoundError):
            await auth_service.get_current_user(login.session.access_token)

    async def test_get_current_user_non_uuid_subject(self, auth_service, signer):
        token = signer.sign(AccessClaims(sub="not-a-uuid"), timedelta(minutes=1))

        with pytest.raises(TokenInvalidError):
            await auth_service.get_current_user(token)


# ---------------------------------------------------------------------------
# End-to-end scenario
# ---------------------------------------------------------------------------

class TestAccountLifecycle:
    """register -> activate -> login -> rotate -> reuse."""

    async def test_full_scenario(self, auth_service, repository, notifier, clock):
        user = await auth_service.register("alice@x.com", TEST_PASSWORD, "Alice")
        assert user.status == AccountStatus.UNACTIVATED
        code = notifier.send_activation_email.call_args.args[2]
        assert user.code_expired == clock() + timedelta(minutes=1)

        with pytest.raises(InvalidCredentialsError):
            await auth_service.login("alice@x.com", TEST_PASSWORD)

        clock.advance(seconds=20)
        activated = await auth_service.activate(user.id, code)
        assert activated.status == AccountStatus.ACTIVE

        login = await auth_service.login("alice@x.com", TEST_PASSWORD)
        r1 = login.session.refresh_token

        rotated = await auth_service.refresh(r1)
        r2 = rotated.refresh_token
        assert rotated.access_token

        with pytest.raises(InvalidRefreshTokenError):
            await auth_service.refresh(r1)

        tokens = await repository.list_refresh_tokens_for_user(user.id)
        assert len(tokens) == 2
        assert all(t.revoked for t in tokens)
        with pytest.raises(InvalidRefreshTokenError):
            await auth_service.refresh(r2)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

class TestFromSettings:
    """Tests for AuthService.from_settings."""

    def test_wires_collaborators(self, repository, clock):
        settings = Settings(
            jwt_algorithm="HS256",
            jwt_secret="from-settings-secret-0123456789abcdef",
            jwt_expire_in="30m",
            refresh_expire_days=3,
            oauth_link_requires_verified_email=False,
        )

        service = AuthService.from_settings(repository, settings, clock=clock)

        assert service.sessions.access_token_ttl == timedelta(minutes=30)
        assert service.sessions.refresh_token_ttl == timedelta(days=3)
        assert service.sessions.clock is clock
        assert isinstance(service.activation.notifier, EmailService)
        assert service.identity.require_verified_email is False

    def test_accepts_explicit_notifier_and_signer(self, repository):
        settings = Settings(jwt_algorithm="HS256")
        notifier = MagicMock()
        signer = TokenSigner("explicit-signer-secret-0123456789abcd", algorithm="HS256")

        service = AuthService.from_settings(
            repository, settings, notifier=notifier, signer=signer
        )

        assert service.activation.notifier is notifier
        assert service.sessions.signer is signer
