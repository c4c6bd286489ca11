"""Credential database pool and schema migrations."""

from pathlib import Path
from typing import Optional

import asyncpg
import structlog

from authcore.config import Settings, get_settings

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"

# Shared pool for the Postgres credential store
_pool: Optional[asyncpg.Pool] = None


def get_pool() -> asyncpg.Pool:
    """Return the open credential database pool.

    Raises:
        RuntimeError: If init_database() has not been awaited
    """
    if _pool is None:
        raise RuntimeError("Credential database pool not initialized; call init_database() first")
    return _pool


async def init_database(settings: Optional[Settings] = None) -> asyncpg.Pool:
    """Open the credential database pool. Repeated calls return the same pool."""
    global _pool

    if _pool is None:
        settings = settings or get_settings()
        _pool = await asyncpg.create_pool(
            settings.postgres_url,
            min_size=settings.postgres_pool_min_size,
            max_size=settings.postgres_pool_max_size,
            command_timeout=settings.postgres_command_timeout,
        )
        logger.info(
            "credential_db_pool_opened",
            min_size=settings.postgres_pool_min_size,
            max_size=settings.postgres_pool_max_size,
        )
    return _pool


async def close_database() -> None:
    global _pool

    pool, _pool = _pool, None
    if pool is not None:
        await pool.close()
        logger.info("credential_db_pool_closed")


async def run_migrations(
    pool: Optional[asyncpg.Pool] = None,
    migrations_dir: Path = MIGRATIONS_DIR,
) -> list[str]:
    """Apply the schema and role seed files in filename order.

    Each file runs in its own transaction. Files are written to be
    re-runnable (IF NOT EXISTS / ON CONFLICT DO NOTHING), so every start
    applies all of them.

    Returns:
        Names of the applied migration files
    """
    if pool is None:
        pool = get_pool()

    if not migrations_dir.is_dir():
        logger.warning("migrations_directory_not_found", path=str(migrations_dir))
        return []

    applied = []
    async with pool.acquire() as conn:
        for migration_file in sorted(migrations_dir.glob("*.sql")):
            try:
                async with conn.transaction():
                    await conn.execute(migration_file.read_text())
            except asyncpg.PostgresError as e:
                logger.error("migration_failed", file=migration_file.name, error=str(e))
                raise
            logger.info("migration_applied", file=migration_file.name)
            applied.append(migration_file.name)

    return applied


async def health_check(pool: Optional[asyncpg.Pool] = None) -> bool:
    """Report whether the credential database answers a trivial query."""
    try:
        if pool is None:
            pool = get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchval("SELECT 1") == 1
    except (RuntimeError, OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        logger.warning("credential_db_unhealthy", error=str(e))
        return False
