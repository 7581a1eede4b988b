"""Authentication entry points: login, registration, OAuth, refresh, logout."""

from typing import Optional
from uuid import UUID

import structlog

from src.config import Settings
from src.models.auth import (
    ClientMeta,
    CurrentUser,
    IssuedSession,
    LoginResult,
    OAuthAssertion,
    UserSummary,
    VerificationCode,
)
from src.models.user import User
from src.repositories.base import AuthRepository
from src.services.activation_service import ActivationNotifier, ActivationService
from src.services.email_service import EmailService
from src.services.errors import (
    InvalidCredentialsError,
    TokenInvalidError,
    UserNotFoundError,
)
from src.services.identity_service import IdentityService
from src.services.password_service import DUMMY_PASSWORD_HASH, verify_password
from src.services.session_service import Clock, SessionService, utcnow
from src.services.token_service import TokenSigner

logger = structlog.get_logger(__name__)


def _user_summary(user: User) -> UserSummary:
    """Convert a User model to a UserSummary."""
    return UserSummary(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role_name,
    )


class AuthService:
    """Facade over sessions, activation, and identity linking.

    Every collaborator is passed in; use from_settings() to wire the
    defaults from configuration.
    """

    def __init__(
        self,
        repository: AuthRepository,
        sessions: SessionService,
        activation: ActivationService,
        identity: IdentityService,
    ):
        self.repository = repository
        self.sessions = sessions
        self.activation = activation
        self.identity = identity

    @classmethod
    def from_settings(
        cls,
        repository: AuthRepository,
        settings: Settings,
        notifier: Optional[ActivationNotifier] = None,
        signer: Optional[TokenSigner] = None,
        clock: Clock = utcnow,
    ) -> "AuthService":
        return cls(
            repository,
            SessionService.from_settings(repository, settings, signer=signer, clock=clock),
            ActivationService(
                repository, notifier or EmailService(settings), clock=clock
            ),
            IdentityService(
                repository,
                require_verified_email=settings.oauth_link_requires_verified_email,
            ),
        )

    # registration and activation

    async def register(self, email: str, password: str, name: str = "") -> User:
        return await self.activation.register(email, password, name)

    async def activate(self, user_id: UUID, code_id: str) -> User:
        return await self.activation.activate(user_id, code_id)

    async def resend_verification_code(
        self, user_id: UUID, email: str
    ) -> VerificationCode:
        return await self.activation.resend_verification_code(user_id, email)

    # login

    async def login(
        self,
        email: str,
        password: str,
        client_meta: Optional[ClientMeta] = None,
    ) -> LoginResult:
        """Login with email and password.

        Unknown email, OAuth-only account, wrong password and a not yet
        activated account all raise the same error. The bcrypt check runs in
        every case so response time does not reveal which one happened.

        Raises:
            InvalidCredentialsError: If the login cannot succeed
            HashFormatError: If the stored hash is corrupt
        """
        user = await self.repository.find_user_by_email(email)

        if user is None or user.password_hash is None:
            verify_password(password, DUMMY_PASSWORD_HASH)
            logger.info("login_failed", reason="unknown_account")
            raise InvalidCredentialsError()

        if not verify_password(password, user.password_hash):
            logger.info("login_failed", user_id=str(user.id), reason="bad_password")
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.info("login_failed", user_id=str(user.id), reason="not_active")
            raise InvalidCredentialsError()

        session = await self.sessions.issue_session(user, client_meta)
        logger.info("user_logged_in", user_id=str(user.id))
        return LoginResult(user=_user_summary(user), session=session)

    async def login_with_oauth(
        self,
        assertion: OAuthAssertion,
        client_meta: Optional[ClientMeta] = None,
    ) -> LoginResult:
        """Resolve a provider identity and open a session for it."""
        user = await self.identity.resolve_oauth_user(assertion)
        session = await self.sessions.issue_session(user, client_meta)
        logger.info("user_logged_in", user_id=str(user.id), provider=assertion.provider)
        return LoginResult(user=_user_summary(user), session=session)

    # sessions

    async def refresh(
        self, raw_refresh_token: str, client_meta: Optional[ClientMeta] = None
    ) -> IssuedSession:
        return await self.sessions.rotate(raw_refresh_token, client_meta)

    async def logout(self, raw_refresh_token: str) -> None:
        await self.sessions.revoke(raw_refresh_token)

    async def logout_everywhere(self, user_id: UUID) -> int:
        return await self.sessions.revoke_all(user_id)

    async def get_current_user(self, access_token: str) -> CurrentUser:
        """Verify an access token and load its user fresh from storage.

        Raises:
            TokenExpiredError: If the token has expired
            TokenInvalidError: If the token is malformed or tampered with
            UserNotFoundError: If the token's subject no longer exists
        """
        claims = self.sessions.verify_access_token(access_token)
        try:
            user_id = UUID(claims.sub)
        except ValueError as e:
            raise TokenInvalidError("Invalid token subject") from e

        user = await self.repository.find_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError()

        return CurrentUser(id=user.id, email=user.email, role=user.role_name)
