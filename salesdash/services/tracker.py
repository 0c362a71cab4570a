"""
SalesTracker - the dashboard's entry point into the data layer.

Combines:
- CacheRegistry for cached sales and users reads
- WriteQueue for serialized writes
- Soft invalidation after every successful write
"""

from typing import Any, Awaitable, Callable

from loguru import logger

from salesdash.datasource.base import AGENT_COLUMN, BaseDataSource, Record
from salesdash.services.cache import CacheResult, RevalidatingCache
from salesdash.services.registry import CacheRegistry
from salesdash.services.warmer import CacheWarmer
from salesdash.services.write_queue import WriteQueue


def _row_number(record: Record) -> int:
    try:
        return int(record.get("row") or 0)
    except (TypeError, ValueError):
        return 0


class SalesTracker:
    """
    Cached reads and queued writes for sales and users.

    Usage:
        tracker = SalesTracker(registry, source, WriteQueue())

        result = await tracker.get_sales()
        if result.stale or result.error:
            ...  # data may be slightly out of date

        await tracker.add_sale("alice", {"Order Cost": 150})
    """

    def __init__(
        self,
        registry: CacheRegistry,
        data_source: BaseDataSource,
        write_queue: WriteQueue,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 10.0,
    ):
        self.registry = registry
        self.data_source = data_source
        self.write_queue = write_queue
        self.warmer = CacheWarmer(
            registry,
            data_source,
            max_retries=max_retries,
            base_delay=base_delay,
            max_delay=max_delay,
        )
        self._fetch_sales = self.warmer.fetcher(data_source.fetch_sales, "Fetch sales")
        self._fetch_users = self.warmer.fetcher(data_source.fetch_users, "Fetch users")

    # Reads

    async def get_sales(self, force_refresh: bool = False) -> CacheResult[list[Record]]:
        return await self.registry.sales.get_or_fetch(self._fetch_sales, force_refresh)

    async def get_agent_sales(
        self, agent_name: str, force_refresh: bool = False
    ) -> CacheResult[list[Record]]:
        """Sales of one agent, filtered from the shared sales cache, newest row first."""
        result = await self.get_sales(force_refresh)
        sales = [sale for sale in result.data if sale.get(AGENT_COLUMN) == agent_name]
        sales.sort(key=_row_number, reverse=True)
        return CacheResult(
            data=sales,
            from_cache=result.from_cache,
            stale=result.stale,
            waited=result.waited,
            error=result.error,
        )

    async def get_users(self) -> CacheResult[list[Record]]:
        return await self.registry.users.get_or_fetch(self._fetch_users)

    # Writes

    async def add_sale(self, agent_name: str, record: Record) -> None:
        await self._write(
            lambda: self.data_source.append_sale(agent_name, record),
            f"Add sale ({agent_name})",
            self.registry.sales,
        )

    async def create_user(self, record: Record) -> None:
        await self._write(
            lambda: self.data_source.append_user(record),
            "Create user",
            self.registry.users,
        )

    async def update_user(self, row_number: int, record: Record) -> None:
        await self._write(
            lambda: self.data_source.update_user(row_number, record),
            f"Update user (row {row_number})",
            self.registry.users,
        )

    async def _write(
        self,
        operation: Callable[[], Awaitable[Any]],
        name: str,
        cache: RevalidatingCache[list[Record]],
    ) -> Any:
        result = await self.write_queue.queue_write(operation, name)
        cache.soft_invalidate()
        logger.debug(f"{name} done, {cache.name} cache marked stale")
        return result

    # Lifecycle

    async def warm(self) -> dict[str, bool]:
        return await self.warmer.warm_all()

    def get_health_status(self) -> dict[str, Any]:
        return {
            "caches": self.registry.get_health_status(),
            "write_queue": self.write_queue.get_stats().to_dict(),
        }

    async def close(self) -> None:
        """Let queued writes and in-flight refreshes finish."""
        await self.write_queue.join()
        for cache in self.registry:
            await cache.wait_for_refresh()
        logger.debug("SalesTracker closed")
