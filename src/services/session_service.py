"""Session issuance, refresh token rotation, and revocation."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from uuid import UUID

import structlog

from src.config import Settings
from src.models.auth import AccessClaims, ClientMeta, IssuedSession
from src.models.user import RefreshToken, User
from src.repositories.base import AuthRepository
from src.services.errors import InvalidRefreshTokenError
from src.services.token_service import (
    TokenSigner,
    generate_refresh_token,
    hash_refresh_token,
)

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]

ACCESS_TOKEN_TTL = timedelta(minutes=15)
REFRESH_TOKEN_TTL = timedelta(days=7)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionService:
    """Issues access/refresh pairs and rotates refresh tokens.

    A refresh token is single-use. Presenting one that is unknown fails
    quietly; presenting one that is revoked or expired is treated as a
    stolen token being replayed, and every refresh token owned by that user
    is revoked before the failure is raised.
    """

    def __init__(
        self,
        repository: AuthRepository,
        signer: TokenSigner,
        access_token_ttl: timedelta = ACCESS_TOKEN_TTL,
        refresh_token_ttl: timedelta = REFRESH_TOKEN_TTL,
        clock: Clock = utcnow,
    ):
        self.repository = repository
        self.signer = signer
        self.access_token_ttl = access_token_ttl
        self.refresh_token_ttl = refresh_token_ttl
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        repository: AuthRepository,
        settings: Settings,
        signer: Optional[TokenSigner] = None,
        clock: Clock = utcnow,
    ) -> "SessionService":
        return cls(
            repository,
            signer or TokenSigner.from_settings(settings),
            access_token_ttl=settings.access_token_ttl,
            refresh_token_ttl=settings.refresh_token_ttl,
            clock=clock,
        )

    def sign_access_token(self, user: User) -> str:
        """Sign an access token from the user's current email and role."""
        claims = AccessClaims(sub=str(user.id), email=user.email, role=user.role_name)
        return self.signer.sign(claims, self.access_token_ttl)

    def verify_access_token(self, token: str) -> AccessClaims:
        return self.signer.verify(token)

    async def issue_session(
        self,
        user: User,
        client_meta: Optional[ClientMeta] = None,
        parent_id: Optional[UUID] = None,
    ) -> IssuedSession:
        """Create an access token and a new refresh token for the user.

        Only the digest of the refresh token is persisted; the raw value is
        returned here and nowhere else.

        Args:
            user: The authenticated user
            client_meta: Optional ip / user agent of the requesting client
            parent_id: Refresh token this one replaces, when rotating

        Returns:
            IssuedSession with both tokens and the refresh expiry
        """
        client_meta = client_meta or ClientMeta()
        access_token = self.sign_access_token(user)

        raw_refresh = generate_refresh_token()
        expires_at = self.clock() + self.refresh_token_ttl
        record = await self.repository.create_refresh_token(
            user_id=user.id,
            token_hash=hash_refresh_token(raw_refresh),
            expires_at=expires_at,
            ip=client_meta.ip,
            user_agent=client_meta.user_agent,
            parent_id=parent_id,
        )

        logger.info(
            "session_issued",
            user_id=str(user.id),
            refresh_id=str(record.id),
            parent_id=str(parent_id) if parent_id else None,
            expires_at=expires_at.isoformat(),
        )

        return IssuedSession(
            access_token=access_token,
            refresh_token=raw_refresh,
            refresh_expires_at=expires_at,
            access_expires_in=int(self.access_token_ttl.total_seconds()),
        )

    async def rotate(
        self, raw_refresh_token: str, client_meta: Optional[ClientMeta] = None
    ) -> IssuedSession:
        """Exchange a refresh token for a new pair, revoking the old one first.

        Raises:
            InvalidRefreshTokenError: If the token is unknown, revoked, expired,
                or was consumed by a concurrent rotation
        """
        record = await self.repository.find_refresh_token_by_hash(
            hash_refresh_token(raw_refresh_token)
        )
        if record is None:
            logger.warning("refresh_token_not_found")
            raise InvalidRefreshTokenError()

        if not record.is_usable(self.clock()):
            await self._revoke_family(
                record, reason="revoked" if record.revoked else "expired"
            )
            raise InvalidRefreshTokenError()

        # Compare-and-set; only one concurrent caller can win this transition.
        if not await self.repository.revoke_refresh_token(record.id):
            await self._revoke_family(record, reason="concurrent_rotation")
            raise InvalidRefreshTokenError()

        user = await self.repository.find_user_by_id(record.user_id)
        if user is None:
            logger.warning("refresh_token_owner_missing", user_id=str(record.user_id))
            raise InvalidRefreshTokenError()

        session = await self.issue_session(user, client_meta, parent_id=record.id)
        logger.info(
            "refresh_token_rotated",
            user_id=str(user.id),
            refresh_id=str(record.id),
        )
        return session

    async def revoke(self, raw_refresh_token: str) -> bool:
        """Revoke a single refresh token (logout).

        Unknown or already revoked tokens are a silent no-op.

        Returns:
            True if this call revoked the token
        """
        record = await self.repository.find_refresh_token_by_hash(
            hash_refresh_token(raw_refresh_token)
        )
        if record is None:
            return False

        revoked = await self.repository.revoke_refresh_token(record.id)
        if revoked:
            logger.info(
                "refresh_token_revoked",
                user_id=str(record.user_id),
                refresh_id=str(record.id),
            )
        return revoked

    async def revoke_all(self, user_id: UUID) -> int:
        """Revoke every refresh token owned by the user."""
        count = await self.repository.revoke_all_refresh_tokens_for_user(user_id)
        logger.info("all_refresh_tokens_revoked", user_id=str(user_id), count=count)
        return count

    async def _revoke_family(self, record: RefreshToken, reason: str) -> None:
        count = await self.repository.revoke_all_refresh_tokens_for_user(record.user_id)
        logger.warning(
            "refresh_token_reuse_detected",
            user_id=str(record.user_id),
            refresh_id=str(record.id),
            reason=reason,
            revoked_count=count,
        )
