"""Seed the ADMIN and USER roles and an optional bootstrap admin.

Usage:
    python -m src.seed

Reads POSTGRES_URL, ADMIN_EMAIL and ADMIN_PASSWORD from the environment
(or .env). Safe to run repeatedly.
"""

import asyncio
from typing import Optional

import structlog
from dotenv import load_dotenv

from src.config import get_settings
from src.database import close_pool, create_pool, run_migrations
from src.models.user import AccountStatus, User
from src.repositories.base import AuthRepository
from src.repositories.postgres import PostgresAuthRepository
from src.services.logging_service import configure_logging
from src.services.password_service import hash_password
from src.services.role_service import ADMIN_ROLE, USER_ROLE, get_or_create_role

logger = structlog.get_logger(__name__)


async def seed(
    repository: AuthRepository,
    admin_email: Optional[str] = None,
    admin_password: Optional[str] = None,
) -> Optional[User]:
    """Ensure both roles exist and, if configured, an active admin account.

    An existing account with the admin email is left untouched.

    Returns:
        The admin user, or None when no admin credentials were given
    """
    admin_role = await get_or_create_role(repository, ADMIN_ROLE)
    await get_or_create_role(repository, USER_ROLE)

    if not admin_email or not admin_password:
        logger.info("seed_admin_skipped", reason="no_admin_credentials")
        return None

    existing = await repository.find_user_by_email(admin_email)
    if existing is not None:
        logger.info("seed_admin_exists", user_id=str(existing.id))
        return existing

    admin = await repository.create_user(
        email=admin_email,
        password_hash=hash_password(admin_password),
        name="Administrator",
        role_id=admin_role.id,
        status=AccountStatus.ACTIVE,
        email_verified=True,
    )
    logger.info("seed_admin_created", user_id=str(admin.id))
    return admin


async def main() -> None:
    load_dotenv()
    settings = get_settings()
    configure_logging(settings.log_level)

    pool = await create_pool(settings.postgres_url, min_size=1, max_size=2)
    try:
        await run_migrations(pool)
        await seed(
            PostgresAuthRepository(pool),
            settings.admin_email,
            settings.admin_password,
        )
    finally:
        await close_pool(pool)

    logger.info("seed_completed")


if __name__ == "__main__":
    asyncio.run(main())
