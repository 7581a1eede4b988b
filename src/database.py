"""asyncpg pool lifecycle and schema migrations for the auth store."""

from pathlib import Path
from typing import Optional

import asyncpg
import structlog

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"


async def create_pool(
    dsn: str, min_size: int = 2, max_size: int = 10
) -> asyncpg.Pool:
    """Open a connection pool for the auth database.

    The pool is returned to the caller and handed to the repository
    explicitly; nothing here keeps a module-level client.

    Args:
        dsn: Postgres connection string
        min_size: Minimum pooled connections
        max_size: Maximum pooled connections

    Returns:
        asyncpg connection pool
    """
    try:
        pool = await asyncpg.create_pool(
            dsn,
            min_size=min_size,
            max_size=max_size,
            command_timeout=60,
        )
    except Exception as e:
        logger.error("database_pool_creation_failed", error=str(e))
        raise

    logger.info("database_pool_created", min_size=min_size, max_size=max_size)
    return pool


async def close_pool(pool: Optional[asyncpg.Pool]) -> None:
    """Close a pool opened with create_pool()."""
    if pool is None:
        return
    await pool.close()
    logger.info("database_pool_closed")


async def run_migrations(
    pool: asyncpg.Pool, migrations_dir: Path = MIGRATIONS_DIR
) -> int:
    """Apply every ``*.sql`` file in name order.

    Migrations are written with IF NOT EXISTS and can be re-run safely.

    Returns:
        Number of migration files applied
    """
    if not migrations_dir.exists():
        logger.warning("migrations_directory_not_found", path=str(migrations_dir))
        return 0

    migration_files = sorted(migrations_dir.glob("*.sql"))
    if not migration_files:
        logger.info("no_migrations_found")
        return 0

    async with pool.acquire() as conn:
        for migration_file in migration_files:
            try:
                await conn.execute(migration_file.read_text())
            except Exception as e:
                logger.error(
                    "migration_failed",
                    file=migration_file.name,
                    error=str(e),
                )
                raise
            logger.info("migration_applied", file=migration_file.name)

    return len(migration_files)


async def health_check(pool: asyncpg.Pool) -> bool:
    """Return True when a trivial query succeeds on the pool."""
    try:
        async with pool.acquire() as conn:
            return await conn.fetchval("SELECT 1") == 1
    except Exception as e:
        logger.error("database_health_check_failed", error=str(e))
        return False
