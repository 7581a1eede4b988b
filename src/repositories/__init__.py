"""Repositories package exports."""

from src.repositories.base import USER_UPDATABLE_FIELDS, AuthRepository
from src.repositories.errors import ConstraintViolation
from src.repositories.memory import InMemoryAuthRepository
from src.repositories.postgres import PostgresAuthRepository

__all__ = [
    "USER_UPDATABLE_FIELDS",
    "AuthRepository",
    "ConstraintViolation",
    "InMemoryAuthRepository",
    "PostgresAuthRepository",
]
