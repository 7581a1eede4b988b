"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from src.models.user import AccountStatus, User
from src.repositories.memory import InMemoryAuthRepository
from src.services.activation_service import ActivationService
from src.services.auth_service import AuthService
from src.services.identity_service import IdentityService
from src.services.password_service import hash_password
from src.services.role_service import USER_ROLE, get_or_create_role
from src.services.session_service import SessionService
from src.services.token_service import TokenSigner

JWT_SECRET = "test-secret-key-for-jwt-unit-tests-0123456789"
TEST_PASSWORD = "correct-horse-battery"


class FrozenClock:
    """Controllable replacement for datetime.now(timezone.utc)."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, moment: datetime) -> None:
        self.now = moment


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def repository() -> InMemoryAuthRepository:
    return InMemoryAuthRepository()


@pytest.fixture
def signer() -> TokenSigner:
    return TokenSigner(JWT_SECRET, algorithm="HS256")


@pytest.fixture
def notifier() -> MagicMock:
    """Stand-in for EmailService; send_activation_email is fire-and-forget."""
    return MagicMock()


@pytest.fixture
def session_service(repository, signer, clock) -> SessionService:
    return SessionService(repository, signer, clock=clock)


@pytest.fixture
def activation_service(repository, notifier, clock) -> ActivationService:
    return ActivationService(repository, notifier, clock=clock)


@pytest.fixture
def identity_service(repository) -> IdentityService:
    return IdentityService(repository)


@pytest.fixture
def auth_service(
    repository, session_service, activation_service, identity_service
) -> AuthService:
    return AuthService(repository, session_service, activation_service, identity_service)


@pytest.fixture
def password_hash() -> str:
    return hash_password(TEST_PASSWORD)


@pytest.fixture
async def active_user(repository, password_hash) -> User:
    """An activated local account with password TEST_PASSWORD."""
    role = await get_or_create_role(repository, USER_ROLE)
    return await repository.create_user(
        email="alice@example.com",
        password_hash=password_hash,
        name="Alice",
        role_id=role.id,
        status=AccountStatus.ACTIVE,
        email_verified=True,
    )
