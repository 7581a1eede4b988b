"""Password hashing and verification (bcrypt)."""

import base64
import hashlib
import re

import bcrypt
import structlog

from src.services.errors import HashFormatError

logger = structlog.get_logger(__name__)

# $2a$/$2b$/$2y$, two-digit cost, 22-char salt + 31-char checksum.
_BCRYPT_HASH_RE = re.compile(r"^\$2[abxy]\$\d{2}\$[./A-Za-z0-9]{53}$")


def _prehash(password: str) -> bytes:
    """Digest the password to 44 bytes so bcrypt's 72-byte limit never applies.

    Every password, short or long, goes through this step on both the hash
    and the verify side.
    """
    digest = hashlib.sha256(password.encode("utf-8")).digest()
    return base64.b64encode(digest)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain-text password to hash, of any length

    Returns:
        Bcrypt hash string
    """
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(_prehash(password), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a bcrypt hash.

    Argument order is always (plain, hash). A mismatch returns False; only a
    structurally broken hash raises.

    Args:
        password: Plain-text password to check
        password_hash: Bcrypt hash to verify against

    Returns:
        True if the password matches, False otherwise

    Raises:
        HashFormatError: If password_hash is not a valid bcrypt hash
    """
    if not _BCRYPT_HASH_RE.match(password_hash or ""):
        logger.error("password_hash_malformed", reason="format")
        raise HashFormatError()

    try:
        return bcrypt.checkpw(_prehash(password), password_hash.encode("utf-8"))
    except ValueError as e:
        logger.error("password_hash_malformed", error=str(e))
        raise HashFormatError() from e


# Checked against when an account has no usable hash, so a login attempt
# costs the same whether or not the account exists.
DUMMY_PASSWORD_HASH = hash_password("timing-equalization-dummy")
