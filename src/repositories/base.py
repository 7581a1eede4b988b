"""Storage contract consumed by the auth services."""

from datetime import datetime
from typing import Any, List, Optional, Protocol
from uuid import UUID

from src.models.user import RefreshToken, Role, User

# Column names accepted by create_user / update_user. Anything else is
# rejected before it can reach a dynamically built statement.
USER_UPDATABLE_FIELDS = frozenset(
    {
        "email",
        "password_hash",
        "name",
        "role_id",
        "status",
        "code_id",
        "code_expired",
        "provider",
        "provider_id",
        "email_verified",
    }
)

REFRESH_TOKEN_UPDATABLE_FIELDS = frozenset({"revoked", "ip", "user_agent", "expires_at"})


def check_fields(fields: dict[str, Any], allowed: frozenset) -> None:
    """Raise ValueError for any field name outside ``allowed``."""
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown fields: {', '.join(sorted(unknown))}")


class AuthRepository(Protocol):
    # users
    async def find_user_by_id(self, user_id: UUID) -> Optional[User]: ...

    async def find_user_by_email(self, email: str) -> Optional[User]: ...

    async def find_user_by_activation_code(
        self, user_id: UUID, code_id: str
    ) -> Optional[User]: ...

    async def find_user_by_provider_identity(
        self, provider: str, provider_id: str
    ) -> Optional[User]: ...

    async def create_user(self, **fields: Any) -> User: ...

    async def update_user(self, user_id: UUID, **fields: Any) -> Optional[User]: ...

    # roles
    async def find_role_by_name(self, name: str) -> Optional[Role]: ...

    async def create_role(self, name: str) -> Role: ...

    # refresh tokens
    async def find_refresh_token_by_hash(
        self, token_hash: str
    ) -> Optional[RefreshToken]: ...

    async def create_refresh_token(
        self,
        user_id: UUID,
        token_hash: str,
        expires_at: datetime,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        parent_id: Optional[UUID] = None,
    ) -> RefreshToken: ...

    async def update_refresh_token(
        self, token_id: UUID, **fields: Any
    ) -> Optional[RefreshToken]: ...

    async def revoke_refresh_token(self, token_id: UUID) -> bool:
        """Compare-and-set ``revoked`` from false to true.

        Returns True only for the caller that performed the transition.
        """
        ...

    async def revoke_all_refresh_tokens_for_user(self, user_id: UUID) -> int:
        """Revoke every token the user owns in one bulk update."""
        ...

    async def list_refresh_tokens_for_user(self, user_id: UUID) -> List[RefreshToken]: ...
