"""Ray-scaled reserve rate to APY conversion.

Aave stores reserve rates as annualized ray values (27-decimal fixed point).
The per-second rate is rate / RAY / SECONDS_PER_YEAR, compounded once per
second over a 365-day year:

  apy_pct = ((1 + rate / RAY / SECONDS_PER_YEAR) ** SECONDS_PER_YEAR - 1) * 100

The raw rate never touches float: the compounding runs in Decimal with a
local context, and only the final percentage is converted.
"""

from decimal import Decimal, Overflow, localcontext

RAY = Decimal(10) ** 27
SECONDS_PER_YEAR = 31_536_000  # 365 * 24 * 60 * 60, no leap-year adjustment
APY_DECIMALS = 4

#: Working precision for the compounding. 1 + r with r ~ 1e-9 needs well
#: beyond the default 28 digits to survive a 31.5M exponent.
_PRECISION = 40


def to_apy(rate_ray: int) -> float:
    """Convert a ray-scaled reserve rate to an annual percentage yield.

    Args:
        rate_ray: Raw rate as an integer in ray units (1e27 = 100%).

    Returns:
        APY as a percentage rounded to 4 decimal places. Zero input returns
        exactly 0.0. Range sanity is left to the ingestion pipeline, so very
        large inputs may produce inf.
    """
    if isinstance(rate_ray, bool) or not isinstance(rate_ray, int):
        raise TypeError(f"rate_ray must be an int, got {type(rate_ray).__name__}")
    if rate_ray == 0:
        return 0.0

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        ctx.traps[Overflow] = False
        rate_per_second = Decimal(rate_ray) / RAY / SECONDS_PER_YEAR
        apy = (1 + rate_per_second) ** SECONDS_PER_YEAR - 1
        pct = float(apy * 100)

    return round(pct, APY_DECIMALS)
