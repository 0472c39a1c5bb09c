"""asyncpg connection pool for the Postgres annotation store.

Pool sizing and timeouts come from ``StorageConfig.postgres``; only the
DSN, which carries the password, is read from the environment.
"""

import os
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from urllib.parse import urlsplit

import asyncpg

from labelsync.config.models.storage import PostgresConfig
from labelsync.db.errors import ConnectionError
from labelsync.observability.logging import get_logger

logger = get_logger(__name__)

DSN_ENV_VARS: tuple[str, ...] = ("LABELSYNC_DATABASE_URL", "DATABASE_URL")
APPLICATION_NAME = "labelsync"


def resolve_dsn(environ: Mapping[str, str] | None = None) -> str:
    """DSN from LABELSYNC_DATABASE_URL, DATABASE_URL or POSTGRES_* parts."""
    env = os.environ if environ is None else environ
    for name in DSN_ENV_VARS:
        if env.get(name):
            return env[name]

    user = env.get("POSTGRES_USER", "labelsync")
    password = env.get("POSTGRES_PASSWORD", "labelsync")
    host = env.get("POSTGRES_HOST", "localhost")
    port = env.get("POSTGRES_PORT", "5432")
    database = env.get("POSTGRES_DB", "labelsync")
    return f"postgresql://{user}:{password}@{host}:{port}/{database}"


def describe_dsn(dsn: str) -> str:
    """host:port/database, safe to log."""
    parts = urlsplit(dsn)
    port = f":{parts.port}" if parts.port else ""
    return f"{parts.hostname or 'localhost'}{port}{parts.path or '/'}"


class PostgresPool:
    """Lazily connected asyncpg pool.

    Usage:
        pool = PostgresPool(config=settings.storage.postgres)
        async with pool.acquire() as conn:
            await conn.fetch("SELECT ...")
        await pool.close()
    """

    def __init__(self, dsn: str | None = None, config: PostgresConfig | None = None) -> None:
        self._dsn = dsn or resolve_dsn()
        self._config = config or PostgresConfig()
        self._pool: asyncpg.Pool | None = None

    @property
    def config(self) -> PostgresConfig:
        return self._config

    @property
    def target(self) -> str:
        return describe_dsn(self._dsn)

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """Open the pool; a no-op when already open.

        Raises:
            ConnectionError: the server is unreachable or refused the login
        """
        if self._pool is not None:
            return

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self._dsn,
                min_size=self._config.min_pool_size,
                max_size=self._config.max_pool_size,
                max_inactive_connection_lifetime=self._config.max_inactive_connection_lifetime,
                command_timeout=self._config.command_timeout,
                server_settings={"application_name": APPLICATION_NAME},
            )
        except (OSError, asyncpg.PostgresError) as e:
            logger.error("postgres_pool_connection_failed", database=self.target, error=str(e))
            raise ConnectionError(
                f"Failed to connect to PostgreSQL at {self.target}: {e}", cause=e
            ) from e

        logger.info(
            "postgres_pool_connected",
            database=self.target,
            min_size=self._config.min_pool_size,
            max_size=self._config.max_pool_size,
        )

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("postgres_pool_closed", database=self.target)

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Borrow a connection, connecting on first use."""
        if self._pool is None:
            await self.connect()

        async with self._pool.acquire() as connection:
            yield connection

    async def health_check(self) -> bool:
        """True when the pool is open and answers a trivial query."""
        if self._pool is None:
            return False

        try:
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except (OSError, asyncpg.PostgresError) as e:
            logger.warning("postgres_health_check_failed", database=self.target, error=str(e))
            return False
        return True
