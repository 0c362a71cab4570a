"""
Pytest configuration and shared fixtures.
"""

import asyncio
import os
import sys
from datetime import timedelta
from typing import Any

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from salesdash.datasource.base import BaseDataSource, Record  # noqa: E402
from salesdash.services.cache import RevalidatingCache  # noqa: E402
from salesdash.services.registry import CacheRegistry  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingFetch:
    """
    Async fetch function that counts its calls.

    Each call returns ``[f"v{n}"]``. When ``gate`` is set, calls block until
    the event fires. ``errors`` is consumed one item per call; a non-None
    item is raised instead of returning.
    """

    def __init__(self, delay: float = 0.0):
        self.calls = 0
        self.delay = delay
        self.gate: asyncio.Event | None = None
        self.errors: list[Exception | None] = []

    async def __call__(self) -> list[str]:
        self.calls += 1
        call = self.calls
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.gate is not None:
            await self.gate.wait()
        if self.errors:
            error = self.errors.pop(0)
            if error is not None:
                raise error
        return [f"v{call}"]


class FakeDataSource(BaseDataSource):
    """In-memory data source recording every call."""

    def __init__(self):
        self.users: list[Record] = [
            {"Agent Name": "alice", "Role": "Agent", "row": 2},
            {"Agent Name": "bob", "Role": "Agent", "row": 3},
            {"Agent Name": "Admin", "Role": "Admin", "row": 4},
        ]
        self.sales: list[Record] = [
            {"Agent Name": "alice", "Order Cost": 100, "row": 2},
            {"Agent Name": "bob", "Order Cost": 200, "row": 2},
            {"Agent Name": "alice", "Order Cost": 300, "row": 3},
        ]
        self.calls: dict[str, int] = {}
        self.fail_with: dict[str, Exception] = {}

    def _record(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1
        if name in self.fail_with:
            raise self.fail_with[name]

    @property
    def service_id(self) -> str:
        return "fake"

    def is_configured(self) -> bool:
        return True

    async def fetch_sales(self) -> list[Record]:
        self._record("fetch_sales")
        return list(self.sales)

    async def fetch_users(self) -> list[Record]:
        self._record("fetch_users")
        return list(self.users)

    async def append_sale(self, agent_name: str, record: Record) -> None:
        self._record("append_sale")
        row = 2 + sum(1 for sale in self.sales if sale["Agent Name"] == agent_name)
        self.sales.append({**record, "Agent Name": agent_name, "row": row})

    async def append_user(self, record: Record) -> None:
        self._record("append_user")
        self.users.append({**record, "row": len(self.users) + 2})

    async def update_user(self, row_number: int, record: Record) -> None:
        self._record("update_user")
        for user in self.users:
            if user["row"] == row_number:
                user.update(record)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def counting_fetch() -> CountingFetch:
    return CountingFetch()


@pytest.fixture
def cache(clock: FakeClock) -> RevalidatingCache[Any]:
    return RevalidatingCache("test", ttl=timedelta(seconds=1), clock=clock)


@pytest.fixture
def fake_source() -> FakeDataSource:
    return FakeDataSource()


@pytest.fixture
def registry(clock: FakeClock) -> CacheRegistry:
    return CacheRegistry(
        sales=RevalidatingCache("sales", ttl=timedelta(minutes=5), clock=clock),
        users=RevalidatingCache("users", ttl=timedelta(hours=5), clock=clock),
    )
