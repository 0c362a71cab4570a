"""
CacheRegistry - holds the named caches of the process.

Built once at start-up and handed to whatever needs the caches.
"""

from datetime import timedelta
from typing import TYPE_CHECKING, Any, Iterator

from loguru import logger

from salesdash.services.cache import RevalidatingCache

if TYPE_CHECKING:
    from salesdash.settings import Settings

SALES = "sales"
USERS = "users"


class CacheRegistry:
    """
    Registry for the sales and users caches.

    Usage:
        registry = CacheRegistry.from_settings(global_settings)
        result = await registry.sales.get_or_fetch(source.fetch_sales)
    """

    def __init__(
        self,
        sales: RevalidatingCache[list[dict[str, Any]]],
        users: RevalidatingCache[list[dict[str, Any]]],
    ):
        self._caches: dict[str, RevalidatingCache[list[dict[str, Any]]]] = {
            SALES: sales,
            USERS: users,
        }

    @classmethod
    def from_settings(cls, settings: "Settings") -> "CacheRegistry":
        """Build both caches with their configured TTLs."""
        registry = cls(
            sales=RevalidatingCache(
                SALES,
                ttl=timedelta(seconds=settings.sales_cache_ttl_seconds),
                debug=settings.cache_debug,
            ),
            users=RevalidatingCache(
                USERS,
                ttl=timedelta(seconds=settings.users_cache_ttl_seconds),
                debug=settings.cache_debug,
            ),
        )
        logger.debug(
            f"Cache registry ready: sales ttl={settings.sales_cache_ttl_seconds}s, "
            f"users ttl={settings.users_cache_ttl_seconds}s"
        )
        return registry

    @property
    def sales(self) -> RevalidatingCache[list[dict[str, Any]]]:
        return self._caches[SALES]

    @property
    def users(self) -> RevalidatingCache[list[dict[str, Any]]]:
        return self._caches[USERS]

    def get(self, name: str) -> RevalidatingCache[list[dict[str, Any]]]:
        """Get a cache by name. Raises KeyError for unknown names."""
        return self._caches[name]

    def names(self) -> list[str]:
        return list(self._caches)

    def __iter__(self) -> Iterator[RevalidatingCache[list[dict[str, Any]]]]:
        return iter(self._caches.values())

    def get_health_status(self) -> dict[str, dict[str, Any]]:
        """Get stats of every cache."""
        return {name: cache.get_stats().to_dict() for name, cache in self._caches.items()}

    def invalidate_all(self) -> None:
        """Hard-invalidate every cache."""
        for cache in self._caches.values():
            cache.invalidate()
        logger.info(f"Invalidated {len(self._caches)} caches")
