"""Registration and email activation codes."""

import hmac
from datetime import timedelta
from typing import Optional, Protocol
from uuid import UUID, uuid4

import structlog

from src.models.auth import VerificationCode
from src.models.user import AccountStatus, User
from src.repositories.base import AuthRepository
from src.repositories.errors import ConstraintViolation
from src.services.errors import (
    CodeExpiredError,
    CodeMismatchError,
    DuplicateEmailError,
    UserNotFoundError,
)
from src.services.password_service import hash_password
from src.services.role_service import USER_ROLE, get_or_create_role
from src.services.session_service import Clock, utcnow

logger = structlog.get_logger(__name__)

# Fixed on purpose; resend_verification_code is the recovery path.
ACTIVATION_CODE_TTL = timedelta(minutes=1)


class ActivationNotifier(Protocol):
    def send_activation_email(
        self,
        to_email: Optional[str],
        recipient_name: str,
        code: str,
        resend: bool = False,
    ) -> None: ...


def new_activation_code() -> str:
    return str(uuid4())


class ActivationService:
    """Creates unactivated accounts and moves them to ``active``.

    There is no transition back from ``active``.
    """

    def __init__(
        self,
        repository: AuthRepository,
        notifier: ActivationNotifier,
        clock: Clock = utcnow,
    ):
        self.repository = repository
        self.notifier = notifier
        self.clock = clock

    async def register(self, email: str, password: str, name: str = "") -> User:
        """Create an unactivated account and email its activation code.

        Args:
            email: Unique email address
            password: Plain-text password (will be hashed)
            name: Display name

        Returns:
            The created user

        Raises:
            DuplicateEmailError: If the email is already registered
        """
        if await self.repository.find_user_by_email(email) is not None:
            raise DuplicateEmailError()

        role = await get_or_create_role(self.repository, USER_ROLE)
        code_id = new_activation_code()

        try:
            user = await self.repository.create_user(
                email=email,
                password_hash=hash_password(password),
                name=name or "",
                role_id=role.id,
                status=AccountStatus.UNACTIVATED,
                code_id=code_id,
                code_expired=self.clock() + ACTIVATION_CODE_TTL,
                email_verified=False,
            )
        except ConstraintViolation as e:
            # Lost a race with a concurrent registration of the same email.
            raise DuplicateEmailError("User with email already exists") from e

        self.notifier.send_activation_email(user.email, user.name, code_id)
        logger.info("user_registered", user_id=str(user.id))
        return user

    async def activate(self, user_id: UUID, code_id: str) -> User:
        """Activate an account with the code from its activation email.

        The code is one-time: it is cleared once the account is active.

        Raises:
            UserNotFoundError: If no user has this id and code
            CodeMismatchError: If the stored code differs
            CodeExpiredError: If the code's deadline has been reached
        """
        user = await self.repository.find_user_by_activation_code(user_id, code_id)
        if user is None:
            raise UserNotFoundError()

        if user.code_id is None or not hmac.compare_digest(
            user.code_id.encode("utf-8"), code_id.encode("utf-8")
        ):
            raise CodeMismatchError()

        if user.code_expired is None or self.clock() >= user.code_expired:
            logger.info("activation_code_expired", user_id=str(user.id))
            raise CodeExpiredError()

        updated = await self.repository.update_user(
            user.id,
            status=AccountStatus.ACTIVE,
            email_verified=True,
            code_id=None,
            code_expired=None,
        )
        if updated is None:
            raise UserNotFoundError()

        logger.info("user_activated", user_id=str(user.id))
        return updated

    async def resend_verification_code(
        self, user_id: UUID, email: str
    ) -> VerificationCode:
        """Replace the activation code of a still-unactivated account.

        The previous code stops matching immediately.

        Raises:
            UserNotFoundError: If no unactivated user has this id and email
        """
        user = await self.repository.find_user_by_id(user_id)
        if (
            user is None
            or user.email != email
            or user.status != AccountStatus.UNACTIVATED
        ):
            raise UserNotFoundError("User not found or already verified")

        code_id = new_activation_code()
        expires_at = self.clock() + ACTIVATION_CODE_TTL
        updated = await self.repository.update_user(
            user.id, code_id=code_id, code_expired=expires_at
        )
        if updated is None:
            raise UserNotFoundError("User not found or already verified")

        self.notifier.send_activation_email(updated.email, updated.name, code_id, resend=True)
        logger.info(
            "activation_code_resent",
            user_id=str(user.id),
            expires_at=expires_at.isoformat(),
        )
        return VerificationCode(user_id=user.id, expires_at=expires_at)
