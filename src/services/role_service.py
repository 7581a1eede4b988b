"""Lookup of the seeded permission groups."""

import structlog

from src.models.user import Role
from src.repositories.base import AuthRepository
from src.repositories.errors import ConstraintViolation

logger = structlog.get_logger(__name__)

ADMIN_ROLE = "ADMIN"
USER_ROLE = "USER"


async def get_or_create_role(repository: AuthRepository, name: str) -> Role:
    """Return the role with this name, creating it on first use.

    If two callers race to create it, the loser re-reads the winner's row.
    """
    role = await repository.find_role_by_name(name)
    if role is not None:
        return role

    try:
        role = await repository.create_role(name)
    except ConstraintViolation:
        role = await repository.find_role_by_name(name)
        if role is None:
            raise
        return role

    logger.info("role_created", role=name, role_id=str(role.id))
    return role
