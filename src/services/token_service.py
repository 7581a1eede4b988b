"""Access token signing (JWT) and refresh token generation."""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

import jwt
import structlog

from src.config import Settings
from src.models.auth import AccessClaims
from src.services.errors import TokenExpiredError, TokenInvalidError

logger = structlog.get_logger(__name__)

# 64 random bytes = 512 bits of entropy, hex-encoded to 128 characters.
REFRESH_TOKEN_BYTES = 64

REQUIRED_CLAIMS = ("sub", "exp", "iat")


def generate_refresh_token() -> str:
    """Return a new raw refresh token value."""
    return secrets.token_hex(REFRESH_TOKEN_BYTES)


def hash_refresh_token(raw_token: str) -> str:
    """Deterministic SHA-256 digest used to store and look up refresh tokens.

    Unlike password hashing this must be unsalted so the same raw value
    always maps to the same stored row.
    """
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


class TokenSigner:
    """Signs and verifies time-bounded access tokens.

    Key material is supplied by the caller. For asymmetric algorithms
    (RS256, ES256, ...) ``signing_key`` is the private PEM and
    ``verifying_key`` the public PEM; for HS* both are the shared secret.
    """

    def __init__(
        self,
        signing_key: str,
        verifying_key: Optional[str] = None,
        algorithm: str = "RS256",
    ):
        self.algorithm = algorithm
        self._signing_key = signing_key
        self._verifying_key = verifying_key or signing_key

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenSigner":
        """Build a signer from configured key files or the shared secret.

        Raises:
            ValueError: If an asymmetric algorithm is configured without key paths
        """
        algorithm = settings.jwt_algorithm
        if algorithm.upper().startswith("HS"):
            return cls(settings.jwt_secret, algorithm=algorithm)

        if not settings.jwt_private_key_path or not settings.jwt_public_key_path:
            raise ValueError(
                f"{algorithm} requires JWT_PRIVATE_KEY_PATH and JWT_PUBLIC_KEY_PATH"
            )
        private_key = Path(settings.jwt_private_key_path).read_text()
        public_key = Path(settings.jwt_public_key_path).read_text()
        return cls(private_key, public_key, algorithm=algorithm)

    def sign(self, claims: AccessClaims, ttl: timedelta) -> str:
        """Create a signed JWT carrying the claims and an expiry.

        Args:
            claims: Subject, email and role to embed
            ttl: Lifetime of the token

        Returns:
            Encoded JWT string
        """
        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = claims.model_dump()
        payload["iat"] = now
        payload["exp"] = now + ttl
        token = jwt.encode(payload, self._signing_key, algorithm=self.algorithm)
        logger.debug(
            "access_token_signed",
            user_id=claims.sub,
            expires_seconds=int(ttl.total_seconds()),
        )
        return token

    def verify(self, token: str) -> AccessClaims:
        """Decode and validate a JWT access token.

        Raises:
            TokenExpiredError: If the token is past its expiry
            TokenInvalidError: If the signature, format or claims are wrong
        """
        try:
            payload = jwt.decode(
                token,
                self._verifying_key,
                algorithms=[self.algorithm],
                options={"require": list(REQUIRED_CLAIMS)},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError() from e
        except jwt.InvalidTokenError as e:
            raise TokenInvalidError(f"Invalid access token: {e}") from e

        return AccessClaims(
            sub=payload["sub"],
            email=payload.get("email"),
            role=payload.get("role"),
        )
