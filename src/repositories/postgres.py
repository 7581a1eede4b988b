"""asyncpg-backed repository for users, roles, and refresh tokens."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional
from uuid import UUID, uuid4

import asyncpg
import structlog

from src.models.user import AccountStatus, RefreshToken, Role, User
from src.repositories.base import (
    REFRESH_TOKEN_UPDATABLE_FIELDS,
    USER_UPDATABLE_FIELDS,
    check_fields,
)
from src.repositories.errors import ConstraintViolation

logger = structlog.get_logger(__name__)

_USER_COLUMNS = """
    u.id, u.email, u.password_hash, u.name, u.role_id, r.name AS role_name,
    u.status, u.code_id, u.code_expired, u.provider, u.provider_id,
    u.email_verified, u.created_at, u.updated_at
"""

_TOKEN_COLUMNS = """
    id, user_id, token_hash, ip, user_agent, expires_at, revoked, parent_id, created_at
"""


def _db_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _affected_rows(status: str) -> int:
    """Parse the row count from an asyncpg status string such as 'UPDATE 3'."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


def _row_to_user(row) -> User:
    role = None
    if row["role_id"] is not None and row["role_name"] is not None:
        role = Role(id=row["role_id"], name=row["role_name"])
    return User(
        id=row["id"],
        email=row["email"],
        password_hash=row["password_hash"],
        name=row["name"],
        role_id=row["role_id"],
        role=role,
        status=AccountStatus(row["status"]),
        code_id=row["code_id"],
        code_expired=row["code_expired"],
        provider=row["provider"],
        provider_id=row["provider_id"],
        email_verified=row["email_verified"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_token(row) -> RefreshToken:
    return RefreshToken(
        id=row["id"],
        user_id=row["user_id"],
        token_hash=row["token_hash"],
        ip=row["ip"],
        user_agent=row["user_agent"],
        expires_at=row["expires_at"],
        revoked=row["revoked"],
        parent_id=row["parent_id"],
        created_at=row["created_at"],
    )


class PostgresAuthRepository:
    """Repository over the schema in migrations/001_auth_schema.sql.

    Usage:
        pool = await create_pool(settings.postgres_url)
        repository = PostgresAuthRepository(pool)
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def _fetch_user(self, where: str, *params: Any) -> Optional[User]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_USER_COLUMNS}
                FROM users u
                LEFT JOIN roles r ON r.id = u.role_id
                WHERE {where}
                """,
                *params,
            )
        return _row_to_user(row) if row is not None else None

    # users

    async def find_user_by_id(self, user_id: UUID) -> Optional[User]:
        return await self._fetch_user("u.id = $1", user_id)

    async def find_user_by_email(self, email: str) -> Optional[User]:
        return await self._fetch_user("u.email = $1", email)

    async def find_user_by_activation_code(
        self, user_id: UUID, code_id: str
    ) -> Optional[User]:
        return await self._fetch_user("u.id = $1 AND u.code_id = $2", user_id, code_id)

    async def find_user_by_provider_identity(
        self, provider: str, provider_id: str
    ) -> Optional[User]:
        return await self._fetch_user(
            "u.provider = $1 AND u.provider_id = $2", provider, provider_id
        )

    async def create_user(self, **fields: Any) -> User:
        """Insert a user row.

        Raises:
            ConstraintViolation: If the email or provider identity is taken
        """
        check_fields(fields, USER_UPDATABLE_FIELDS)
        fields.setdefault("status", AccountStatus.UNACTIVATED)
        now = datetime.now(timezone.utc)
        columns = ["id", *fields.keys(), "created_at", "updated_at"]
        params = [uuid4(), *(_db_value(v) for v in fields.values()), now, now]
        placeholders = ", ".join(f"${i}" for i in range(1, len(params) + 1))

        query = f"""
            WITH u AS (
                INSERT INTO users ({', '.join(columns)})
                VALUES ({placeholders})
                RETURNING *
            )
            SELECT {_USER_COLUMNS}
            FROM u
            LEFT JOIN roles r ON r.id = u.role_id
        """

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(query, *params)
        except asyncpg.exceptions.UniqueViolationError as e:
            raise ConstraintViolation(
                "user already exists", {"constraint": e.constraint_name}
            ) from e

        return _row_to_user(row)

    async def update_user(self, user_id: UUID, **fields: Any) -> Optional[User]:
        """Update the given columns and return the fresh row.

        Raises:
            ConstraintViolation: If the new email or provider identity is taken
        """
        check_fields(fields, USER_UPDATABLE_FIELDS)
        if not fields:
            return await self.find_user_by_id(user_id)

        set_clauses = []
        params: list[Any] = []
        for param_idx, (column, value) in enumerate(fields.items(), start=1):
            set_clauses.append(f"{column} = ${param_idx}")
            params.append(_db_value(value))

        # Always update updated_at
        params.append(datetime.now(timezone.utc))
        set_clauses.append(f"updated_at = ${len(params)}")

        params.append(user_id)

        query = f"""
            WITH u AS (
                UPDATE users
                SET {', '.join(set_clauses)}
                WHERE id = ${len(params)}
                RETURNING *
            )
            SELECT {_USER_COLUMNS}
            FROM u
            LEFT JOIN roles r ON r.id = u.role_id
        """

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(query, *params)
        except asyncpg.exceptions.UniqueViolationError as e:
            raise ConstraintViolation(
                "user field already in use", {"constraint": e.constraint_name}
            ) from e

        if row is None:
            return None

        logger.debug("user_row_updated", user_id=str(user_id), fields=sorted(fields))
        return _row_to_user(row)

    # roles

    async def find_role_by_name(self, name: str) -> Optional[Role]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("SELECT id, name FROM roles WHERE name = $1", name)
        return Role(id=row["id"], name=row["name"]) if row is not None else None

    async def create_role(self, name: str) -> Role:
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    "INSERT INTO roles (id, name) VALUES ($1, $2) RETURNING id, name",
                    uuid4(),
                    name,
                )
        except asyncpg.exceptions.UniqueViolationError as e:
            raise ConstraintViolation("role already exists", {"name": name}) from e
        return Role(id=row["id"], name=row["name"])

    # refresh tokens

    async def find_refresh_token_by_hash(
        self, token_hash: str
    ) -> Optional[RefreshToken]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_TOKEN_COLUMNS} FROM refresh_tokens WHERE token_hash = $1",
                token_hash,
            )
        return _row_to_token(row) if row is not None else None

    async def create_refresh_token(
        self,
        user_id: UUID,
        token_hash: str,
        expires_at: datetime,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        parent_id: Optional[UUID] = None,
    ) -> RefreshToken:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO refresh_tokens
                    (id, user_id, token_hash, ip, user_agent, expires_at, revoked, parent_id, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, FALSE, $7, $8)
                RETURNING {_TOKEN_COLUMNS}
                """,
                uuid4(),
                user_id,
                token_hash,
                ip,
                user_agent,
                expires_at,
                parent_id,
                datetime.now(timezone.utc),
            )
        return _row_to_token(row)

    async def update_refresh_token(
        self, token_id: UUID, **fields: Any
    ) -> Optional[RefreshToken]:
        check_fields(fields, REFRESH_TOKEN_UPDATABLE_FIELDS)
        if not fields:
            raise ValueError("No refresh token fields to update")

        set_clauses = [f"{column} = ${i}" for i, column in enumerate(fields, start=1)]
        params = [*fields.values(), token_id]

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE refresh_tokens
                SET {', '.join(set_clauses)}
                WHERE id = ${len(params)}
                RETURNING {_TOKEN_COLUMNS}
                """,
                *params,
            )
        return _row_to_token(row) if row is not None else None

    async def revoke_refresh_token(self, token_id: UUID) -> bool:
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE refresh_tokens
                SET revoked = TRUE
                WHERE id = $1 AND revoked = FALSE
                """,
                token_id,
            )
        return _affected_rows(result) == 1

    async def revoke_all_refresh_tokens_for_user(self, user_id: UUID) -> int:
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE refresh_tokens
                SET revoked = TRUE
                WHERE user_id = $1 AND revoked = FALSE
                """,
                user_id,
            )
        return _affected_rows(result)

    async def list_refresh_tokens_for_user(self, user_id: UUID) -> List[RefreshToken]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_TOKEN_COLUMNS}
                FROM refresh_tokens
                WHERE user_id = $1
                ORDER BY created_at ASC
                """,
                user_id,
            )
        return [_row_to_token(row) for row in rows]
