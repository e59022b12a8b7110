"""
Run a single retention sweep, e.g. from cron when the API's own sweeper is disabled.
"""

import asyncio
import os

import asyncpg

from moviefinder.background import retention_sweep
from moviefinder.db.postgres import PostgresBackend
from moviefinder.interactions import InteractionStore
from moviefinder.logger import logger


async def main():
    pool = await asyncpg.create_pool(os.environ["POSTGRES_URI"])
    searches, recommendations = await retention_sweep(InteractionStore(PostgresBackend(pool)))
    logger.info(f"deleted {searches} expired searches and {recommendations} expired recommendations")
    await pool.close()


if __name__ == "__main__":
    asyncio.run(main())
