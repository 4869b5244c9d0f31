"""Aave V3 reserve reader via web3.py AsyncWeb3.

Reads the Protocol Data Provider, which returns rates and totals for a
reserve in one flat call, plus the reserve configuration for token decimals
(cached per asset since it never changes for a listed reserve).
"""

from web3 import AsyncWeb3

from yield_monitor.chain.source import ReserveDataSource, ReserveState
from yield_monitor.config import ChainSettings
from yield_monitor.logging import get_logger

logger = get_logger(__name__)

DATA_PROVIDER_ABI = [
    {
        "inputs": [{"internalType": "address", "name": "asset", "type": "address"}],
        "name": "getReserveData",
        "outputs": [
            {"internalType": "uint256", "name": "unbacked", "type": "uint256"},
            {"internalType": "uint256", "name": "accruedToTreasuryScaled", "type": "uint256"},
            {"internalType": "uint256", "name": "totalAToken", "type": "uint256"},
            {"internalType": "uint256", "name": "totalStableDebt", "type": "uint256"},
            {"internalType": "uint256", "name": "totalVariableDebt", "type": "uint256"},
            {"internalType": "uint256", "name": "liquidityRate", "type": "uint256"},
            {"internalType": "uint256", "name": "variableBorrowRate", "type": "uint256"},
            {"internalType": "uint256", "name": "stableBorrowRate", "type": "uint256"},
            {"internalType": "uint256", "name": "averageStableBorrowRate", "type": "uint256"},
            {"internalType": "uint256", "name": "liquidityIndex", "type": "uint256"},
            {"internalType": "uint256", "name": "variableBorrowIndex", "type": "uint256"},
            {"internalType": "uint40", "name": "lastUpdateTimestamp", "type": "uint40"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "address", "name": "asset", "type": "address"}],
        "name": "getReserveConfigurationData",
        "outputs": [
            {"internalType": "uint256", "name": "decimals", "type": "uint256"},
            {"internalType": "uint256", "name": "ltv", "type": "uint256"},
            {"internalType": "uint256", "name": "liquidationThreshold", "type": "uint256"},
            {"internalType": "uint256", "name": "liquidationBonus", "type": "uint256"},
            {"internalType": "uint256", "name": "reserveFactor", "type": "uint256"},
            {"internalType": "bool", "name": "usageAsCollateralEnabled", "type": "bool"},
            {"internalType": "bool", "name": "borrowingEnabled", "type": "bool"},
            {"internalType": "bool", "name": "stableBorrowRateEnabled", "type": "bool"},
            {"internalType": "bool", "name": "isActive", "type": "bool"},
            {"internalType": "bool", "name": "isFrozen", "type": "bool"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]


class AaveV3DataSource(ReserveDataSource):
    """Concrete Aave V3 reserve reader using web3.py's async provider."""

    def __init__(self, settings: ChainSettings, w3: AsyncWeb3 | None = None) -> None:
        self._settings = settings
        self._w3 = w3 or AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(settings.rpc_url.get_secret_value())
        )
        self._data_provider = self._w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(settings.data_provider_address),
            abi=DATA_PROVIDER_ABI,
        )
        self._decimals: dict[str, int] = {}

    async def connect(self) -> None:
        """Verify the provider answers before the scheduler starts polling."""
        logger.info(
            "connecting_to_rpc",
            data_provider=self._settings.data_provider_address,
        )
        connected = await self._w3.is_connected()
        logger.info("rpc_connection_checked", connected=connected)

    async def close(self) -> None:
        """Close the provider session where the installed web3 supports it."""
        disconnect = getattr(self._w3.provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()
        logger.info("rpc_connection_closed")

    async def get_block_number(self) -> int:
        return int(await self._w3.eth.block_number)

    async def get_reserve_state(self, asset_address: str) -> ReserveState:
        asset = AsyncWeb3.to_checksum_address(asset_address)
        data = await self._data_provider.functions.getReserveData(asset).call()
        decimals = await self._get_decimals(asset)

        return ReserveState(
            liquidity_rate=int(data[5]),
            variable_borrow_rate=int(data[6]),
            total_supply=int(data[2]),
            total_borrow=int(data[3]) + int(data[4]),
            decimals=decimals,
            last_update_timestamp=int(data[11]),
        )

    async def _get_decimals(self, asset: str) -> int:
        cached = self._decimals.get(asset)
        if cached is not None:
            return cached
        config = await self._data_provider.functions.getReserveConfigurationData(asset).call()
        decimals = int(config[0])
        self._decimals[asset] = decimals
        return decimals
