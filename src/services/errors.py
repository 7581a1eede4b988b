"""Typed failures raised by the auth services.

Every failure carries an ``AuthErrorKind`` so a transport layer can map it
to a response without string matching. Login and refresh failures are
deliberately generic; activation and registration failures are specific.
"""

from enum import Enum
from typing import Optional


class AuthErrorKind(str, Enum):
    """Distinguishable failure kinds."""

    DUPLICATE_EMAIL = "duplicate_email"
    INVALID_CREDENTIALS = "invalid_credentials"
    USER_NOT_FOUND = "user_not_found"
    CODE_MISMATCH = "code_mismatch"
    CODE_EXPIRED = "code_expired"
    INVALID_REFRESH_TOKEN = "invalid_refresh_token"
    HASH_FORMAT = "hash_format"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_INVALID = "token_invalid"
    ACCOUNT_LINK = "account_link"


class AuthError(Exception):
    """Base class for all auth failures."""

    kind: AuthErrorKind
    default_message: str = "Authentication failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class DuplicateEmailError(AuthError):
    kind = AuthErrorKind.DUPLICATE_EMAIL
    default_message = "Email already in use"


class InvalidCredentialsError(AuthError):
    """Bad email, bad password, or an account that cannot log in yet."""

    kind = AuthErrorKind.INVALID_CREDENTIALS
    default_message = "Invalid credentials"


class UserNotFoundError(AuthError):
    kind = AuthErrorKind.USER_NOT_FOUND
    default_message = "User not found"


class CodeMismatchError(AuthError):
    kind = AuthErrorKind.CODE_MISMATCH
    default_message = "Activation code is incorrect"


class CodeExpiredError(AuthError):
    kind = AuthErrorKind.CODE_EXPIRED
    default_message = "Activation code has expired"


class InvalidRefreshTokenError(AuthError):
    """Missing, expired, revoked, or reused refresh token."""

    kind = AuthErrorKind.INVALID_REFRESH_TOKEN
    default_message = "Invalid refresh token"


class HashFormatError(AuthError):
    """A stored password hash is structurally invalid (integrity fault)."""

    kind = AuthErrorKind.HASH_FORMAT
    default_message = "Stored password hash is malformed"


class TokenExpiredError(AuthError):
    kind = AuthErrorKind.TOKEN_EXPIRED
    default_message = "Access token has expired"


class TokenInvalidError(AuthError):
    kind = AuthErrorKind.TOKEN_INVALID
    default_message = "Invalid access token"


class AccountLinkError(AuthError):
    """A provider identity cannot be linked to the account owning its email."""

    kind = AuthErrorKind.ACCOUNT_LINK
    default_message = "Cannot link provider identity to existing account"
