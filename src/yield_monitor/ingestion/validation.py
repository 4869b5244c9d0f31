"""Hard and soft checks applied to every reading before it is cached.

Hard errors reject the reading. Warnings are data-quality concerns that are
logged while the reading proceeds.
"""

import math
from datetime import datetime

from yield_monitor.ingestion.models import ValidationResult
from yield_monitor.models import YieldInfo, ensure_utc

MAX_PLAUSIBLE_APY = 1000.0


def _is_number(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def validate_yield_info(
    info: YieldInfo,
    now: datetime,
    stale_after_seconds: float = 300,
) -> ValidationResult:
    """Validate a fetched reading.

    Hard errors: missing/non-string symbol; non-numeric or NaN APYs or
    utilization; missing/invalid timestamp; non-positive block number;
    utilization outside [0, 100].

    Warnings: APY outside [0, 1000]; borrow APY below supply APY; reading
    older than stale_after_seconds relative to now.
    """
    errors: list[str] = []
    warnings: list[str] = []

    symbol = getattr(info, "symbol", None)
    if not symbol or not isinstance(symbol, str):
        errors.append("Symbol is required and must be a string")

    supply = getattr(info, "supply_apy", None)
    borrow = getattr(info, "borrow_apy", None)
    utilization = getattr(info, "utilization_rate", None)

    supply_ok = _is_number(supply)
    borrow_ok = _is_number(borrow)
    utilization_ok = _is_number(utilization)

    if not supply_ok:
        errors.append("Supply APY must be a valid number")
    if not borrow_ok:
        errors.append("Borrow APY must be a valid number")
    if not utilization_ok:
        errors.append("Utilization rate must be a valid number")

    last_updated = getattr(info, "last_updated", None)
    timestamp_ok = isinstance(last_updated, datetime)
    if not timestamp_ok:
        errors.append("Last updated must be a valid datetime")

    block_number = getattr(info, "block_number", None)
    if isinstance(block_number, bool) or not isinstance(block_number, int) or block_number <= 0:
        errors.append("Block number must be a positive integer")

    if utilization_ok and not 0 <= utilization <= 100:
        errors.append("Utilization rate must be between 0 and 100")

    if supply_ok and not 0 <= supply <= MAX_PLAUSIBLE_APY:
        warnings.append("Supply APY seems unusually high or negative")
    if borrow_ok and not 0 <= borrow <= MAX_PLAUSIBLE_APY:
        warnings.append("Borrow APY seems unusually high or negative")
    if supply_ok and borrow_ok and borrow < supply:
        warnings.append("Borrow APY is lower than supply APY, which is unusual")

    if timestamp_ok:
        age = (now - ensure_utc(last_updated)).total_seconds()
        if age > stale_after_seconds:
            warnings.append(f"Data timestamp is more than {stale_after_seconds:g} seconds old")

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)
