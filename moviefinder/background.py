import asyncio
from typing import Awaitable, Callable

from moviefinder.interactions import InteractionStore
from moviefinder.logger import logger


async def retention_sweep(store: InteractionStore) -> tuple[int, int]:
    searches, recommendations = await store.purge_expired()
    logger.debug(f"retention sweep done: {searches} searches, {recommendations} recommendations")
    return searches, recommendations


async def periodic_retention_sweep(
    store: InteractionStore,
    interval: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    logger.info(f"starting retention sweep every {interval:.0f}s")
    while True:
        try:
            await retention_sweep(store)
        except Exception as exc:
            logger.error(f"retention sweep failed, retrying in {interval:.0f}s: {exc!r}")
        await sleep(interval)
