"""
Cache warmer - fills the caches at start-up so the first readers do not
pay for a cold fetch.
"""

import asyncio
from typing import Any, Awaitable, Callable

from loguru import logger

from salesdash.datasource.base import BaseDataSource, Record
from salesdash.services.registry import SALES, USERS, CacheRegistry
from salesdash.services.retry import with_retry


class CacheWarmer:
    """Pre-warms the registry's caches from a data source."""

    def __init__(
        self,
        registry: CacheRegistry,
        data_source: BaseDataSource,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 10.0,
    ):
        self.registry = registry
        self.data_source = data_source
        self._retry_kwargs: dict[str, Any] = {
            "max_retries": max_retries,
            "base_delay": base_delay,
            "max_delay": max_delay,
        }

    def fetcher(
        self, fetch: Callable[[], Awaitable[list[Record]]], name: str
    ) -> Callable[[], Awaitable[list[Record]]]:
        """Wrap a data source read in with_retry."""

        async def fetch_with_retry() -> list[Record]:
            return await with_retry(fetch, name=name, **self._retry_kwargs)

        return fetch_with_retry

    async def warm_sales(self) -> bool:
        return await self.registry.sales.pre_warm(
            self.fetcher(self.data_source.fetch_sales, "Fetch sales")
        )

    async def warm_users(self) -> bool:
        return await self.registry.users.pre_warm(
            self.fetcher(self.data_source.fetch_users, "Fetch users")
        )

    async def warm_all(self) -> dict[str, bool]:
        """
        Warm every cache concurrently.

        Never raises; a cache that could not be warmed is reported as False
        and will be filled by the first read instead.
        """
        logger.info("Starting cache pre-warming...")
        users_ok, sales_ok = await asyncio.gather(self.warm_users(), self.warm_sales())
        results = {USERS: users_ok, SALES: sales_ok}
        logger.info(f"Cache pre-warming complete: {results}")
        return results
