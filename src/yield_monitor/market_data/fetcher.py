"""Single-asset reserve fetch with bounded retries and linear backoff.

One fetch reads the block number and the reserve state, converts both ray
rates to APY, and derives utilization and human-unit totals. A failed
attempt waits retry_delay * attempt_number before the next one; after
max_retries consecutive failures FetchExhausted wraps the last error.
"""

import asyncio
from decimal import Decimal

from yield_monitor.chain.rates import to_apy
from yield_monitor.chain.source import ReserveDataSource, ReserveState
from yield_monitor.exceptions import FetchExhausted
from yield_monitor.logging import get_logger
from yield_monitor.models import YieldInfo, utcnow

logger = get_logger(__name__)

_TOTAL_QUANTUM = Decimal("0.01")


class RetryingFetcher:
    """Fetches one asset's YieldInfo from a ReserveDataSource with retries.

    Args:
        source: Reserve data source (RPC boundary).
        max_retries: Total attempts before giving up (>= 1).
        retry_delay: Base backoff delay in seconds.
    """

    def __init__(
        self,
        source: ReserveDataSource,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._source = source
        self._max_retries = max_retries
        self._retry_delay = retry_delay

    @property
    def source(self) -> ReserveDataSource:
        return self._source

    async def fetch_one(self, asset_address: str, symbol: str) -> YieldInfo:
        """Fetch and convert the current reserve state for one asset.

        Suspends for up to sum(retry_delay * n) seconds across retries; do not
        call from code that cannot tolerate multi-second latency.

        Raises:
            FetchExhausted: All max_retries attempts failed.
        """
        last_error: Exception | None = None

        for attempt in range(1, self._max_retries + 1):
            try:
                logger.debug("fetching_reserve", symbol=symbol, attempt=attempt)
                info = await self._read(asset_address, symbol)
                logger.info(
                    "reserve_fetched",
                    symbol=symbol,
                    supply_apy=info.supply_apy,
                    borrow_apy=info.borrow_apy,
                    utilization_rate=info.utilization_rate,
                    block_number=info.block_number,
                )
                return info
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "reserve_fetch_retry",
                    symbol=symbol,
                    attempt=attempt,
                    max_retries=self._max_retries,
                    error=str(exc),
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(self._retry_delay * attempt)

        logger.error(
            "reserve_fetch_exhausted",
            symbol=symbol,
            attempts=self._max_retries,
            error=str(last_error),
        )
        raise FetchExhausted(symbol, self._max_retries, last_error) from last_error

    async def _read(self, asset_address: str, symbol: str) -> YieldInfo:
        block_number = await self._source.get_block_number()
        state = await self._source.get_reserve_state(asset_address)
        return build_yield_info(asset_address, symbol, state, block_number)


def build_yield_info(
    asset_address: str,
    symbol: str,
    state: ReserveState,
    block_number: int,
) -> YieldInfo:
    """Convert a raw ReserveState into a YieldInfo reading stamped with now."""
    scale = Decimal(10) ** state.decimals
    total_supply = Decimal(state.total_supply) / scale
    total_borrow = Decimal(state.total_borrow) / scale

    if state.total_supply > 0:
        utilization = Decimal(state.total_borrow) / Decimal(state.total_supply) * 100
        utilization_rate = round(float(utilization), 2)
    else:
        utilization_rate = 0.0

    return YieldInfo(
        asset=asset_address,
        symbol=symbol,
        supply_apy=to_apy(state.liquidity_rate),
        borrow_apy=to_apy(state.variable_borrow_rate),
        utilization_rate=utilization_rate,
        total_supply=str(total_supply.quantize(_TOTAL_QUANTUM)),
        total_borrow=str(total_borrow.quantize(_TOTAL_QUANTUM)),
        last_updated=utcnow(),
        block_number=int(block_number),
    )
