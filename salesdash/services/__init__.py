"""
Service layer infrastructure - caching and write coordination for the
Google Sheets backing store.

Provides:
- RevalidatingCache: Stale-while-revalidate cache with fetch deduplication
- CacheRegistry: The process's sales and users caches
- with_retry: Exponential backoff on rate-limit errors
- WriteQueue: Serialized FIFO writes
- CacheWarmer: Start-up pre-warming
- SalesTracker: Cached reads and queued writes combined
"""

from salesdash.services.errors import (
    ServiceError,
    RateLimitError,
    UpstreamError,
    QueueClearedError,
)
from salesdash.services.retry import backoff_delay, is_rate_limit_error, with_retry
from salesdash.services.cache import CacheResult, CacheStats, RevalidatingCache
from salesdash.services.write_queue import QueueStats, WriteQueue
from salesdash.services.registry import CacheRegistry
from salesdash.services.warmer import CacheWarmer
from salesdash.services.tracker import SalesTracker

__all__ = [
    # Errors
    "ServiceError",
    "RateLimitError",
    "UpstreamError",
    "QueueClearedError",
    # Retry
    "backoff_delay",
    "is_rate_limit_error",
    "with_retry",
    # Cache
    "CacheResult",
    "CacheStats",
    "RevalidatingCache",
    "CacheRegistry",
    "CacheWarmer",
    # Writes
    "QueueStats",
    "WriteQueue",
    # Facade
    "SalesTracker",
]
