"""Abstract reserve data source interface.

Fetching and scheduling code depends only on this interface, keeping the
web3/RPC details isolated in the concrete implementation. Any method may
raise on a transient RPC failure; callers own the retry policy.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ReserveState:
    """Raw reserve state for one asset as read from the protocol.

    Rates are ray-scaled integers; totals are in the token's smallest unit.
    """

    liquidity_rate: int
    variable_borrow_rate: int
    total_supply: int
    total_borrow: int  # stable + variable debt
    decimals: int
    last_update_timestamp: int  # unix seconds


class ReserveDataSource(ABC):
    """Abstract base class for lending-protocol reserve readers."""

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the underlying RPC connection."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release RPC resources."""
        ...

    @abstractmethod
    async def get_block_number(self) -> int:
        """Return the latest block number. Also used as the connectivity probe."""
        ...

    @abstractmethod
    async def get_reserve_state(self, asset_address: str) -> ReserveState:
        """Return the current reserve state for an asset."""
        ...
