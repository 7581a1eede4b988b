"""In-memory repository for tests and local development."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from src.models.user import AccountStatus, RefreshToken, Role, User
from src.repositories.base import (
    REFRESH_TOKEN_UPDATABLE_FIELDS,
    USER_UPDATABLE_FIELDS,
    check_fields,
)
from src.repositories.errors import ConstraintViolation


class InMemoryAuthRepository:
    """Dict-backed store with the same atomicity as the Postgres repository.

    A single asyncio lock guards every read-modify-write, so the
    compare-and-set revoke and the bulk revoke behave atomically across
    concurrent tasks. Records are copied on the way in and out; callers can
    never mutate stored state by accident.
    """

    def __init__(self) -> None:
        self.users: Dict[UUID, User] = {}
        self.roles: Dict[UUID, Role] = {}
        self.refresh_tokens: Dict[UUID, RefreshToken] = {}
        self._lock = asyncio.Lock()

    def _with_role(self, user: User) -> User:
        role = self.roles.get(user.role_id) if user.role_id else None
        return user.model_copy(update={"role": role})

    def _check_user_uniqueness(self, candidate: User) -> None:
        for existing in self.users.values():
            if existing.id == candidate.id:
                continue
            if candidate.email is not None and existing.email == candidate.email:
                raise ConstraintViolation("email already exists", {"field": "email"})
            if (
                candidate.provider is not None
                and candidate.provider_id is not None
                and existing.provider == candidate.provider
                and existing.provider_id == candidate.provider_id
            ):
                raise ConstraintViolation(
                    "provider identity already linked",
                    {"field": "provider_id"},
                )

    # users

    async def find_user_by_id(self, user_id: UUID) -> Optional[User]:
        async with self._lock:
            user = self.users.get(user_id)
            return self._with_role(user) if user else None

    async def find_user_by_email(self, email: str) -> Optional[User]:
        async with self._lock:
            user = next((u for u in self.users.values() if u.email == email), None)
            return self._with_role(user) if user else None

    async def find_user_by_activation_code(
        self, user_id: UUID, code_id: str
    ) -> Optional[User]:
        async with self._lock:
            user = self.users.get(user_id)
            if user is None or user.code_id is None or user.code_id != code_id:
                return None
            return self._with_role(user)

    async def find_user_by_provider_identity(
        self, provider: str, provider_id: str
    ) -> Optional[User]:
        async with self._lock:
            user = next(
                (
                    u
                    for u in self.users.values()
                    if u.provider == provider and u.provider_id == provider_id
                ),
                None,
            )
            return self._with_role(user) if user else None

    async def create_user(self, **fields: Any) -> User:
        check_fields(fields, USER_UPDATABLE_FIELDS)
        now = datetime.now(timezone.utc)
        fields.setdefault("status", AccountStatus.UNACTIVATED)
        user = User(id=uuid4(), created_at=now, updated_at=now, **fields)
        async with self._lock:
            self._check_user_uniqueness(user)
            self.users[user.id] = user
            return self._with_role(user)

    async def update_user(self, user_id: UUID, **fields: Any) -> Optional[User]:
        check_fields(fields, USER_UPDATABLE_FIELDS)
        async with self._lock:
            user = self.users.get(user_id)
            if user is None:
                return None
            fields["updated_at"] = datetime.now(timezone.utc)
            updated = user.model_copy(update=fields)
            self._check_user_uniqueness(updated)
            self.users[user_id] = updated
            return self._with_role(updated)

    # roles

    async def find_role_by_name(self, name: str) -> Optional[Role]:
        async with self._lock:
            return next((r for r in self.roles.values() if r.name == name), None)

    async def create_role(self, name: str) -> Role:
        async with self._lock:
            if any(r.name == name for r in self.roles.values()):
                raise ConstraintViolation("role already exists", {"field": "name"})
            role = Role(id=uuid4(), name=name)
            self.roles[role.id] = role
            return role

    # refresh tokens

    async def find_refresh_token_by_hash(
        self, token_hash: str
    ) -> Optional[RefreshToken]:
        async with self._lock:
            token = next(
                (t for t in self.refresh_tokens.values() if t.token_hash == token_hash),
                None,
            )
            return token.model_copy() if token else None

    async def create_refresh_token(
        self,
        user_id: UUID,
        token_hash: str,
        expires_at: datetime,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        parent_id: Optional[UUID] = None,
    ) -> RefreshToken:
        token = RefreshToken(
            id=uuid4(),
            user_id=user_id,
            token_hash=token_hash,
            ip=ip,
            user_agent=user_agent,
            expires_at=expires_at,
            revoked=False,
            parent_id=parent_id,
            created_at=datetime.now(timezone.utc),
        )
        async with self._lock:
            if any(t.token_hash == token_hash for t in self.refresh_tokens.values()):
                raise ConstraintViolation(
                    "refresh token hash already exists", {"field": "token_hash"}
                )
            self.refresh_tokens[token.id] = token
            return token.model_copy()

    async def update_refresh_token(
        self, token_id: UUID, **fields: Any
    ) -> Optional[RefreshToken]:
        check_fields(fields, REFRESH_TOKEN_UPDATABLE_FIELDS)
        async with self._lock:
            token = self.refresh_tokens.get(token_id)
            if token is None:
                return None
            updated = token.model_copy(update=fields)
            self.refresh_tokens[token_id] = updated
            return updated.model_copy()

    async def revoke_refresh_token(self, token_id: UUID) -> bool:
        async with self._lock:
            token = self.refresh_tokens.get(token_id)
            if token is None or token.revoked:
                return False
            self.refresh_tokens[token_id] = token.model_copy(update={"revoked": True})
            return True

    async def revoke_all_refresh_tokens_for_user(self, user_id: UUID) -> int:
        async with self._lock:
            count = 0
            for token_id, token in list(self.refresh_tokens.items()):
                if token.user_id == user_id and not token.revoked:
                    self.refresh_tokens[token_id] = token.model_copy(
                        update={"revoked": True}
                    )
                    count += 1
            return count

    async def list_refresh_tokens_for_user(self, user_id: UUID) -> List[RefreshToken]:
        async with self._lock:
            tokens = [t for t in self.refresh_tokens.values() if t.user_id == user_id]
            return sorted(
                (t.model_copy() for t in tokens), key=lambda t: t.created_at
            )
