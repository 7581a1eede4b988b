"""User, role, and refresh token records."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class AccountStatus(str, Enum):
    """Account lifecycle states. ``active`` is terminal."""

    UNACTIVATED = "unactivated"
    ACTIVE = "active"


class Role(BaseModel):
    """A named permission group such as ADMIN or USER."""

    id: UUID
    name: str


class User(BaseModel):
    """An identity record.

    ``password_hash`` is absent for OAuth-only accounts, and ``email`` may be
    absent when the identity provider did not share one.
    """

    id: UUID
    email: Optional[str] = None
    password_hash: Optional[str] = None
    name: str = ""
    role_id: Optional[UUID] = None
    role: Optional[Role] = None
    status: AccountStatus = AccountStatus.UNACTIVATED
    code_id: Optional[str] = None
    code_expired: Optional[datetime] = None
    provider: Optional[str] = None
    provider_id: Optional[str] = None
    email_verified: bool = False
    created_at: datetime
    updated_at: datetime

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE

    @property
    def role_name(self) -> Optional[str]:
        return self.role.name if self.role is not None else None


class RefreshToken(BaseModel):
    """A stored refresh token. Only the digest of the raw value is kept."""

    id: UUID
    user_id: UUID
    token_hash: str
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    expires_at: datetime
    revoked: bool = False
    parent_id: Optional[UUID] = None
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """Expiry is derived from the clock, never stored as a flag."""
        return now > self.expires_at

    def is_usable(self, now: datetime) -> bool:
        return not self.revoked and not self.is_expired(now)
