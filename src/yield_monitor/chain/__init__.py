"""Chain layer -- reserve data source interface, Aave V3 reader, and rate conversion."""

from yield_monitor.chain.aave_v3 import AaveV3DataSource
from yield_monitor.chain.rates import RAY, SECONDS_PER_YEAR, to_apy
from yield_monitor.chain.source import ReserveDataSource, ReserveState

__all__ = [
    "RAY",
    "SECONDS_PER_YEAR",
    "AaveV3DataSource",
    "ReserveDataSource",
    "ReserveState",
    "to_apy",
]
