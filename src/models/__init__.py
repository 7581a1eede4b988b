"""Models package exports."""

from src.models.auth import (
    AccessClaims,
    ClientMeta,
    CurrentUser,
    IssuedSession,
    LoginResult,
    OAuthAssertion,
    UserSummary,
    VerificationCode,
)
from src.models.user import AccountStatus, RefreshToken, Role, User

__all__ = [
    "AccessClaims",
    "AccountStatus",
    "ClientMeta",
    "CurrentUser",
    "IssuedSession",
    "LoginResult",
    "OAuthAssertion",
    "RefreshToken",
    "Role",
    "User",
    "UserSummary",
    "VerificationCode",
]
