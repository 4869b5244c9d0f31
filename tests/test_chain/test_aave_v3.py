"""Tests for AaveV3DataSource with a mocked AsyncWeb3 instance."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from yield_monitor.chain.aave_v3 import AaveV3DataSource
from yield_monitor.config import ChainSettings

USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"

RESERVE_DATA = (
    0,  # unbacked
    0,  # accruedToTreasuryScaled
    1_000_000_000_000,  # totalAToken (1M USDC, 6 decimals)
    50_000_000_000,  # totalStableDebt
    750_000_000_000,  # totalVariableDebt
    39420077107309470000000000,  # liquidityRate
    51000000000000000000000000,  # variableBorrowRate
    0,
    0,
    0,
    0,
    1_704_110_400,  # lastUpdateTimestamp
)


@pytest.fixture
def w3() -> MagicMock:
    """AsyncWeb3 stand-in whose contract calls return canned tuples."""
    w3 = MagicMock()
    w3.is_connected = AsyncMock(return_value=True)

    async def _block_number() -> int:
        return 19_000_000

    type(w3.eth).block_number = property(lambda self: _block_number())

    contract = MagicMock()
    contract.functions.getReserveData.return_value.call = AsyncMock(return_value=RESERVE_DATA)
    contract.functions.getReserveConfigurationData.return_value.call = AsyncMock(
        return_value=(6, 7500, 7800, 10500, 1000, True, True, False, True, False)
    )
    w3.eth.contract.return_value = contract
    w3.provider = MagicMock(spec=[])
    return w3


@pytest.fixture
def source(w3: MagicMock) -> AaveV3DataSource:
    return AaveV3DataSource(ChainSettings(), w3=w3)


class TestAaveV3DataSource:
    @pytest.mark.asyncio
    async def test_get_block_number(self, source: AaveV3DataSource) -> None:
        assert await source.get_block_number() == 19_000_000

    @pytest.mark.asyncio
    async def test_reserve_state_maps_contract_fields(self, source: AaveV3DataSource) -> None:
        state = await source.get_reserve_state(USDC)

        assert state.liquidity_rate == 39420077107309470000000000
        assert state.variable_borrow_rate == 51000000000000000000000000
        assert state.total_supply == 1_000_000_000_000
        assert state.total_borrow == 800_000_000_000
        assert state.decimals == 6
        assert state.last_update_timestamp == 1_704_110_400

    @pytest.mark.asyncio
    async def test_address_is_checksummed(self, source: AaveV3DataSource, w3: MagicMock) -> None:
        await source.get_reserve_state(USDC)
        contract = w3.eth.contract.return_value
        contract.functions.getReserveData.assert_called_with(
            "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
        )

    @pytest.mark.asyncio
    async def test_decimals_are_cached_per_asset(
        self, source: AaveV3DataSource, w3: MagicMock
    ) -> None:
        await source.get_reserve_state(USDC)
        await source.get_reserve_state(USDC)
        config_call = w3.eth.contract.return_value.functions.getReserveConfigurationData
        assert config_call.return_value.call.await_count == 1

    @pytest.mark.asyncio
    async def test_connect_checks_provider(self, source: AaveV3DataSource, w3: MagicMock) -> None:
        await source.connect()
        w3.is_connected.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_without_disconnect_support(self, source: AaveV3DataSource) -> None:
        await source.close()
