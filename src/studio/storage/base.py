"""
Base Storage

Base class for PostgreSQL storage with connection pooling.
Supabase is reached through its plain Postgres endpoint.
"""
import asyncpg
import asyncio
import json
import logging
import os
import time
from typing import Optional, Any

logger = logging.getLogger("studio.storage")


class StorageUnavailable(Exception):
    """Raised when the database cannot be reached"""


class DuplicateError(Exception):
    """Raised when an insert hits a unique constraint"""


class BaseStorage:
    """Base storage class with PostgreSQL connection pool"""

    def __init__(self, postgres_dsn: str = "postgresql://postgres@localhost/studio"):
        """
        Initialize base storage.

        Args:
            postgres_dsn: PostgreSQL connection DSN
        """
        self.pg_pool: Optional[asyncpg.Pool] = None
        self.pg_dsn = postgres_dsn
        self.process_id = os.getpid()
        self._initialized = False

    async def init(self):
        """Initialize storage - connect to PostgreSQL"""
        if self._initialized:
            return

        start_time = time.time()
        name = type(self).__name__

        try:
            await self._init_postgres()
            self._initialized = True

            duration_ms = round((time.time() - start_time) * 1000, 2)
            logger.info(f"{name} initialized in {duration_ms}ms")
        except Exception as e:
            logger.error(f"Failed to initialize {name}: {e}")
            raise

    async def _init_postgres(self):
        """Initialize PostgreSQL connection pool with retries"""
        max_retries = 3
        retry_delay = 1

        current_pid = os.getpid()

        # Forked worker needs its own pool
        if self.pg_pool is not None and self.process_id != current_pid:
            logger.info(f"New process detected (old: {self.process_id}, new: {current_pid}), creating new pool")
            self.pg_pool = None

        self.process_id = current_pid

        for attempt in range(1, max_retries + 1):
            try:
                self.pg_pool = await asyncpg.create_pool(
                    self.pg_dsn,
                    min_size=1,
                    max_size=5,
                    command_timeout=60
                )

                async with self.pg_pool.acquire() as conn:
                    await conn.fetchval("SELECT 1")

                logger.debug(f"PostgreSQL connected (attempt {attempt}/{max_retries})")
                return

            except Exception as e:
                logger.error(f"PostgreSQL connection failed (attempt {attempt}/{max_retries}): {e}")
                if attempt < max_retries:
                    logger.info(f"Retrying in {retry_delay}s...")
                    await asyncio.sleep(retry_delay)

        raise StorageUnavailable("Failed to connect to PostgreSQL after all retries")

    async def close(self):
        """Close database connections"""
        if self.pg_pool:
            await self.pg_pool.close()
            self.pg_pool = None
            self._initialized = False
            logger.info(f"{type(self).__name__} closed")

    def _pool(self) -> asyncpg.Pool:
        if self.pg_pool is None:
            raise StorageUnavailable(f"{type(self).__name__} is not initialized")
        return self.pg_pool

    async def execute(self, query: str, *args) -> str:
        """Execute a query and return status"""
        async with self._pool().acquire() as conn:
            return await conn.execute(query, *args)

    async def executemany(self, query: str, args: list) -> None:
        """Execute a query for every argument tuple"""
        async with self._pool().acquire() as conn:
            await conn.executemany(query, args)

    async def fetch(self, query: str, *args) -> list:
        """Fetch multiple rows"""
        async with self._pool().acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args) -> Optional[asyncpg.Record]:
        """Fetch single row"""
        async with self._pool().acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args) -> Any:
        """Fetch single value"""
        async with self._pool().acquire() as conn:
            return await conn.fetchval(query, *args)


def dump_json(value) -> Optional[str]:
    """Serialize a value for a JSONB column"""
    if value is None:
        return None
    return json.dumps(value, default=str)


def load_json(value, default=None):
    """Read a JSONB column that asyncpg may hand back as text"""
    if value is None:
        return default
    if isinstance(value, str):
        return json.loads(value)
    return value


def affected(result: str) -> int:
    """Row count from an asyncpg status string such as 'UPDATE 3'"""
    try:
        return int(result.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0
