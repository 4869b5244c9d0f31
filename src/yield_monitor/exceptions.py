"""Custom exceptions for the yield monitor.

Only two conditions fail an operation outward: ConnectionFailed from
PollingScheduler.start() and FetchExhausted from a direct single-asset fetch.
Everything else is handled inside the component that detects it.
"""


class YieldMonitorError(Exception):
    """Base exception for all yield monitor errors."""


class ConnectionFailed(YieldMonitorError):
    """Raised when the startup probe cannot reach the reserve data source."""


class FetchExhausted(YieldMonitorError):
    """Raised when every retry attempt for one asset's reserve fetch failed."""

    def __init__(self, symbol: str, attempts: int, last_error: BaseException | None) -> None:
        self.symbol = symbol
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Failed to fetch data for {symbol} after {attempts} attempts: {last_error}"
        )


class ValidationFailed(YieldMonitorError):
    """Raised inside the ingestion pipeline when a reading fails hard checks."""

    def __init__(self, symbol: object, errors: list[str]) -> None:
        self.symbol = symbol
        self.errors = errors
        super().__init__(f"Validation failed for {symbol}: {'; '.join(errors)}")
