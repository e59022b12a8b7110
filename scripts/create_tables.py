import asyncio
import os

import asyncpg

from moviefinder.db.postgres import (create_recommendations_table,
                                     create_search_history_table)
from moviefinder.logger import logger


async def main():
    pool = await asyncpg.create_pool(os.environ["POSTGRES_URI"])

    logger.info("creating database tables")
    await create_search_history_table(pool)
    await create_recommendations_table(pool)
    logger.info("created all required tables")
    await pool.close()


if __name__ == "__main__":
    asyncio.run(main())
