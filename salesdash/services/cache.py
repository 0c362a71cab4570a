"""
RevalidatingCache - single-value async cache with stale-while-revalidate.

Features:
- TTL on the cached value
- Stale-while-revalidate: expired data is served while one refresh runs
- Fetch deduplication: concurrent callers share a single in-flight task
- Soft invalidation (keep data, refresh in background) and hard invalidation
- Falls back to stale data when the upstream fetch fails
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")

FetchFn = Callable[[], Awaitable[T]]


@dataclass
class CacheResult(Generic[T]):
    """Result envelope from get_or_fetch."""

    data: T
    from_cache: bool
    stale: bool = False
    waited: bool = False
    error: bool = False


@dataclass
class CacheStats:
    """Cache state and counters."""

    name: str = ""
    has_data: bool = False
    size: int = 0
    age_seconds: float | None = None
    is_fetching: bool = False
    ttl_seconds: float = 0.0
    is_stale: bool = False
    hits: int = 0
    misses: int = 0
    stale_hits: int = 0
    waits: int = 0
    fallbacks: int = 0
    fetches: int = 0

    @property
    def hit_rate(self) -> float:
        """Share of reads answered without waiting on upstream."""
        total = self.hits + self.stale_hits + self.misses
        if total == 0:
            return 0.0
        return (self.hits + self.stale_hits) / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "has_data": self.has_data,
            "size": self.size,
            "age_seconds": self.age_seconds,
            "is_fetching": self.is_fetching,
            "ttl_seconds": self.ttl_seconds,
            "is_stale": self.is_stale,
            "hits": self.hits,
            "misses": self.misses,
            "stale_hits": self.stale_hits,
            "waits": self.waits,
            "fallbacks": self.fallbacks,
            "fetches": self.fetches,
            "hit_rate": f"{self.hit_rate:.2%}",
        }


class RevalidatingCache(Generic[T]):
    """
    Holds one dataset fetched from a slow, rate-limited upstream.

    At most one upstream fetch is in flight at any time. The task is
    installed on the cache before the first await that follows the
    "is a fetch running?" check, so the check-then-set is atomic on the
    event loop.

    Usage:
        sales = RevalidatingCache("sales", ttl=timedelta(minutes=5))

        result = await sales.get_or_fetch(source.fetch_sales)
        rows = result.data

        # after a write
        sales.soft_invalidate()

    Args:
        name: Label for logs and stats
        ttl: How long a fetched value counts as fresh
        discard_on_invalidate: When True, a fetch started before a hard
            invalidate() does not write its result back into the cache
        clock: Monotonic time source in seconds
        debug: Emit per-lookup debug logs
    """

    def __init__(
        self,
        name: str,
        ttl: timedelta = timedelta(minutes=5),
        discard_on_invalidate: bool = False,
        clock: Callable[[], float] = time.monotonic,
        debug: bool = False,
    ):
        self.name = name
        self._ttl = ttl
        self._discard_on_invalidate = discard_on_invalidate
        self._clock = clock
        self._debug = debug

        self._data: T | None = None
        self._last_fetch_time: float | None = None
        self._fetch_task: asyncio.Task[T] | None = None
        self._fetch_fn: FetchFn[T] | None = None
        self._detached_tasks: set[asyncio.Task[T]] = set()
        self._generation = 0
        self._stats = CacheStats(name=name)

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def data(self) -> T | None:
        return self._data

    @property
    def is_fetching(self) -> bool:
        return self._fetch_task is not None

    def _age(self) -> float | None:
        if self._last_fetch_time is None:
            return None
        return self._clock() - self._last_fetch_time

    def _is_fresh(self) -> bool:
        age = self._age()
        return (
            self._data is not None
            and age is not None
            and age < self._ttl.total_seconds()
        )

    async def get_or_fetch(
        self,
        fetch_fn: FetchFn[T],
        force_refresh: bool = False,
    ) -> CacheResult[T]:
        """
        Return cached data or fetch it, sharing any in-flight fetch.

        Args:
            fetch_fn: Zero-argument async callable loading the dataset
            force_refresh: Skip the TTL and stale paths

        Returns:
            CacheResult describing where the data came from

        Raises:
            Whatever fetch_fn raised, when there is no data to fall back to
        """
        self._fetch_fn = fetch_fn

        if not force_refresh and self._is_fresh():
            self._stats.hits += 1
            self._log(f"HIT: {self._size()} rows, age {self._age():.1f}s")
            return CacheResult(data=self._data, from_cache=True)

        if not force_refresh and self._data is not None and self._fetch_task is None:
            self._stats.stale_hits += 1
            self._log(f"STALE HIT: {self._size()} rows, refreshing in background")
            self._start_fetch(fetch_fn, background=True)
            return CacheResult(data=self._data, from_cache=True, stale=True)

        if self._fetch_task is not None:
            self._stats.waits += 1
            self._log("WAIT: joining in-flight fetch")
            try:
                data = await asyncio.shield(self._fetch_task)
            except Exception as e:
                if self._data is not None:
                    self._stats.fallbacks += 1
                    logger.warning(
                        f"[Cache:{self.name}] Shared fetch failed, returning stale data: {e}"
                    )
                    return CacheResult(data=self._data, from_cache=True, error=True)
                raise
            return CacheResult(data=data, from_cache=True, waited=True)

        self._stats.misses += 1
        self._log(
            f"MISS: previous {self._size() if self._data is not None else 'empty'}, "
            "fetching from upstream"
        )
        task = self._start_fetch(fetch_fn)
        try:
            data = await asyncio.shield(task)
        except Exception as e:
            if self._data is not None:
                self._stats.fallbacks += 1
                logger.warning(
                    f"[Cache:{self.name}] Fetch failed, returning stale data: {e}"
                )
                return CacheResult(data=self._data, from_cache=True, error=True)
            logger.error(f"[Cache:{self.name}] Fetch failed with no data to fall back to: {e}")
            raise
        return CacheResult(data=data, from_cache=False)

    def _start_fetch(self, fetch_fn: FetchFn[T], background: bool = False) -> asyncio.Task[T]:
        """Create the fetch task and install it on the cache."""
        self._stats.fetches += 1
        task = asyncio.create_task(self._run_fetch(fetch_fn, self._generation))
        self._fetch_task = task
        if background:
            task.add_done_callback(self._on_background_done)
        return task

    async def _run_fetch(self, fetch_fn: FetchFn[T], generation: int) -> T:
        started = self._clock()
        try:
            data = await fetch_fn()
            if self._discard_on_invalidate and generation != self._generation:
                self._log("DISCARD: cache was invalidated while fetching")
            else:
                self._data = data
                self._last_fetch_time = self._clock()
                self._log(
                    f"FETCHED: {self._size()} rows in {self._clock() - started:.3f}s"
                )
            return data
        finally:
            # A hard invalidate may already have replaced the reference
            if self._fetch_task is asyncio.current_task():
                self._fetch_task = None

    def _on_background_done(self, task: asyncio.Task[T]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"[Cache:{self.name}] Background refresh failed: {error}")

    def soft_invalidate(self) -> None:
        """
        Mark the data as expired without dropping it.

        Kicks off a background refresh with the last fetch function when no
        fetch is already running, so readers keep getting the old data
        until the new one lands.
        """
        logger.info(
            f"[Cache:{self.name}] Soft invalidate, keeping {self._size()} rows"
        )
        self._last_fetch_time = None
        if self._fetch_fn is not None and self._fetch_task is None:
            self._start_fetch(self._fetch_fn, background=True)

    def invalidate(self) -> None:
        """
        Drop the data and forget any in-flight fetch.

        The fetch itself is not cancelled. Unless the cache was built with
        ``discard_on_invalidate``, its result still lands in the cache.
        """
        logger.info(f"[Cache:{self.name}] Hard invalidate, clearing {self._size()} rows")
        self._data = None
        self._last_fetch_time = None
        if self._fetch_task is not None:
            # Keep a reference until the forgotten fetch finishes
            self._detached_tasks.add(self._fetch_task)
            self._fetch_task.add_done_callback(self._detached_tasks.discard)
        self._fetch_task = None
        self._generation += 1

    def update(self, data: T) -> None:
        """Store data directly and mark it fresh."""
        self._data = data
        self._last_fetch_time = self._clock()
        logger.info(f"[Cache:{self.name}] Updated directly with {self._size()} rows")

    async def pre_warm(self, fetch_fn: FetchFn[T]) -> bool:
        """
        Populate the cache at start-up.

        Returns:
            True if the cache holds data afterwards, False if the fetch failed
        """
        if self._data is not None:
            logger.info(f"[Cache:{self.name}] Already warm")
            return True

        logger.info(f"[Cache:{self.name}] Pre-warming...")
        try:
            await self.get_or_fetch(fetch_fn)
        except Exception as e:
            logger.error(f"[Cache:{self.name}] Failed to warm: {e}")
            return False
        logger.info(f"[Cache:{self.name}] Warmed with {self._size()} rows")
        return True

    async def wait_for_refresh(self) -> None:
        """Wait for the in-flight fetch, if any. Never raises fetch errors."""
        task = self._fetch_task
        if task is None:
            return
        await asyncio.wait({task})

    def get_stats(self) -> CacheStats:
        """Get cache state and counters."""
        age = self._age()
        ttl_seconds = self._ttl.total_seconds()
        self._stats.has_data = self._data is not None
        self._stats.size = self._size()
        self._stats.age_seconds = round(age, 1) if age is not None else None
        self._stats.is_fetching = self._fetch_task is not None
        self._stats.ttl_seconds = ttl_seconds
        self._stats.is_stale = self._data is not None and (
            age is None or age >= ttl_seconds
        )
        return self._stats

    def _size(self) -> int:
        if self._data is None:
            return 0
        try:
            return len(self._data)  # type: ignore[arg-type]
        except TypeError:
            return 1

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[Cache:{self.name}] {message}")
