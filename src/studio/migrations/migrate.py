"""
Database Migration Runner

Runs the numbered SQL files in this directory in order.

Usage:
    python -m studio.migrations.migrate
"""
import asyncio
import asyncpg
import logging
import sys
from pathlib import Path

from ..config import Config

logger = logging.getLogger("studio.migrations")

MIGRATIONS_DIR = Path(__file__).parent


async def run_migrations(dsn: str = None) -> int:
    """
    Run all SQL migrations in order.

    Returns:
        Number of files that failed
    """
    dsn = dsn or Config.get_postgres_dsn()
    failures = 0

    conn = await asyncpg.connect(dsn)
    logger.info("Connected to database")
    try:
        for sql_file in sorted(MIGRATIONS_DIR.glob("*.sql")):
            logger.info(f"Running migration: {sql_file.name}")
            try:
                await conn.execute(sql_file.read_text(encoding="utf-8"))
                logger.info(f"  {sql_file.name} completed")
            except asyncpg.PostgresError as e:
                # Later files may not depend on this one
                failures += 1
                logger.error(f"  Error in {sql_file.name}: {e}")
    finally:
        await conn.close()

    logger.info("Migrations complete" if not failures else f"Migrations finished with {failures} error(s)")
    return failures


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    try:
        failures = asyncio.run(run_migrations())
    except (OSError, asyncpg.PostgresError) as e:
        logger.error(f"Connection failed: {e}")
        sys.exit(1)
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
