"""Resolution of third-party identities to local users."""

import structlog

from src.models.auth import OAuthAssertion
from src.models.user import AccountStatus, User
from src.repositories.base import AuthRepository
from src.repositories.errors import ConstraintViolation
from src.services.errors import AccountLinkError
from src.services.role_service import USER_ROLE, get_or_create_role

logger = structlog.get_logger(__name__)


class IdentityService:
    """Finds, links, or creates the local user behind a provider identity.

    Resolution order:
      1. exact (provider, provider_id) match, returned unchanged
      2. email match, linked to the provider identity
      3. a new active user with no password

    Linking by email trusts the provider's claim about the address, so by
    default it only happens when the provider marks the email verified.
    This service never issues tokens.
    """

    def __init__(
        self,
        repository: AuthRepository,
        require_verified_email: bool = True,
    ):
        self.repository = repository
        self.require_verified_email = require_verified_email

    async def resolve_oauth_user(self, assertion: OAuthAssertion) -> User:
        """Return the local user for a provider assertion.

        Calling this repeatedly with the same provider identity returns the
        same user and creates nothing new.

        Raises:
            AccountLinkError: If the email belongs to an existing account and
                cannot be linked (unverified email, or a conflicting link)
        """
        user = await self.repository.find_user_by_provider_identity(
            assertion.provider, assertion.provider_id
        )
        if user is not None:
            return user

        if assertion.email:
            existing = await self.repository.find_user_by_email(assertion.email)
            if existing is not None:
                return await self._link(existing, assertion)

        return await self._create(assertion)

    async def _link(self, user: User, assertion: OAuthAssertion) -> User:
        if self.require_verified_email and not assertion.email_verified:
            logger.warning(
                "oauth_link_refused",
                user_id=str(user.id),
                provider=assertion.provider,
                reason="email_not_verified",
            )
            raise AccountLinkError(
                "Email is registered locally but not verified by the provider"
            )

        fields = {
            "provider": assertion.provider,
            "provider_id": assertion.provider_id,
            "email_verified": (
                assertion.email_verified
                if assertion.email_verified is not None
                else user.email_verified
            ),
        }
        # Provider verification proves control of the mailbox.
        if assertion.email_verified and user.status == AccountStatus.UNACTIVATED:
            fields.update(status=AccountStatus.ACTIVE, code_id=None, code_expired=None)

        try:
            await self.repository.update_user(user.id, **fields)
        except ConstraintViolation as e:
            return await self._resolve_after_conflict(assertion, e)

        linked = await self.repository.find_user_by_id(user.id)
        if linked is None:
            raise AccountLinkError("Account disappeared while linking")

        logger.info(
            "oauth_identity_linked",
            user_id=str(linked.id),
            provider=assertion.provider,
            replaced_provider=user.provider,
        )
        return linked

    async def _create(self, assertion: OAuthAssertion) -> User:
        role = await get_or_create_role(self.repository, USER_ROLE)

        fields = {
            "provider": assertion.provider,
            "provider_id": assertion.provider_id,
            "email_verified": bool(assertion.email_verified),
            "role_id": role.id,
            "status": AccountStatus.ACTIVE,
        }
        if assertion.email:
            fields["email"] = assertion.email
        if assertion.name:
            fields["name"] = assertion.name

        try:
            user = await self.repository.create_user(**fields)
        except ConstraintViolation as e:
            return await self._resolve_after_conflict(assertion, e)

        logger.info("oauth_user_created", user_id=str(user.id), provider=assertion.provider)
        return user

    async def _resolve_after_conflict(
        self, assertion: OAuthAssertion, error: ConstraintViolation
    ) -> User:
        """A concurrent request may have linked or created this identity first."""
        user = await self.repository.find_user_by_provider_identity(
            assertion.provider, assertion.provider_id
        )
        if user is not None:
            return user
        raise AccountLinkError("Provider identity conflicts with another account") from error
