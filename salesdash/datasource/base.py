"""
Base data source interface.
"""

from abc import ABC, abstractmethod
from typing import Any

Record = dict[str, Any]

AGENT_COLUMN = "Agent Name"


class BaseDataSource(ABC):
    """
    Abstract base class for the dashboard's backing store.

    All data sources should:
    - Return records as dicts keyed by column header
    - Raise RateLimitError for throttling and UpstreamError for other
      upstream failures, so the retry layer can tell them apart
    """

    @property
    @abstractmethod
    def service_id(self) -> str:
        """Unique identifier for this data source."""
        ...

    @abstractmethod
    async def fetch_sales(self) -> list[Record]:
        """Fetch every sale across all agents."""
        ...

    @abstractmethod
    async def fetch_users(self) -> list[Record]:
        """Fetch every user account."""
        ...

    @abstractmethod
    async def append_sale(self, agent_name: str, record: Record) -> None:
        """Append one sale to the agent's ledger."""
        ...

    @abstractmethod
    async def append_user(self, record: Record) -> None:
        """Append one user account."""
        ...

    @abstractmethod
    async def update_user(self, row_number: int, record: Record) -> None:
        """Overwrite the user account stored at ``row_number``."""
        ...

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if the data source is properly configured."""
        ...
