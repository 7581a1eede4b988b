"""Value objects passed in and out of the auth services."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class ClientMeta(BaseModel):
    """Where a session was requested from. Both fields are optional."""

    ip: Optional[str] = Field(default=None, max_length=64)
    user_agent: Optional[str] = None


class IssuedSession(BaseModel):
    """A freshly minted access/refresh pair.

    Attributes:
        access_token: Short-lived signed JWT
        refresh_token: Raw refresh value; this is the only place it is exposed
        refresh_expires_at: When the refresh token stops being accepted
        access_expires_in: Access token lifetime in seconds
        token_type: Always "bearer"
    """

    access_token: str
    refresh_token: str
    refresh_expires_at: datetime
    access_expires_in: int = Field(ge=1, description="Access token lifetime in seconds")
    token_type: str = "bearer"


class UserSummary(BaseModel):
    """Compact user representation returned with a session."""

    id: UUID
    email: Optional[str] = None
    name: str = ""
    role: Optional[str] = None


class LoginResult(BaseModel):
    """Successful login: who logged in plus their new session."""

    user: UserSummary
    session: IssuedSession


class OAuthAssertion(BaseModel):
    """Identity asserted by a third-party provider after its own login flow.

    Attributes:
        provider: Provider name, e.g. "google" or "github"
        provider_id: The provider's stable subject identifier
        email: Email shared by the provider, if any
        email_verified: Whether the provider vouches for the email
        name: Display name shared by the provider, if any
    """

    provider: str = Field(..., min_length=1, max_length=50)
    provider_id: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = None
    email_verified: Optional[bool] = None
    name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def email_blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty email from the provider as missing."""
        if v is None:
            return v
        stripped = v.strip()
        return stripped or None


class AccessClaims(BaseModel):
    """Claims embedded in every access token."""

    sub: str
    email: Optional[str] = None
    role: Optional[str] = None


class CurrentUser(BaseModel):
    """The caller behind a verified access token, re-read from storage."""

    id: UUID
    email: Optional[str] = None
    role: Optional[str] = None


class VerificationCode(BaseModel):
    """Deadline of a newly issued activation code.

    The code itself only travels by email.
    """

    user_id: UUID
    expires_at: datetime
