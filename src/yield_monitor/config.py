"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ChainSettings(BaseSettings):
    """Ethereum RPC and Aave V3 contract settings."""

    model_config = SettingsConfigDict(env_prefix="CHAIN_")

    rpc_url: SecretStr = SecretStr("https://eth.llamarpc.com")
    data_provider_address: str = "0x7B4EB56E7CD4b454BA8ff71E4518426369a138a3"
    source_tag: str = "aave-v3"


class PollingSettings(BaseSettings):
    """Reserve polling cadence, retry policy, and the tracked asset list."""

    model_config = SettingsConfigDict(env_prefix="POLLING_")

    interval_ms: int = 30_000
    max_retries: int = 3
    retry_delay_ms: int = 1_000  # linear backoff: delay * attempt
    assets: dict[str, str] = {
        "USDC": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        "USDT": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
        "DAI": "0x6B175474E89094C44Da98b954EedeAC495271d0F",
    }


class IngestionSettings(BaseSettings):
    """Validation, caching, and metrics parameters for the ingestion pipeline."""

    model_config = SettingsConfigDict(env_prefix="INGESTION_")

    max_cache_size: int = 1000
    significant_change_threshold: float = 0.1  # percentage points
    stale_after_seconds: int = 300
    rate_window_seconds: int = 60
    health_window_seconds: int = 300
    event_queue_size: int = 1000


class ChangeDetectionSettings(BaseSettings):
    """Thresholds (percent change) for classifying consecutive snapshot deltas."""

    model_config = SettingsConfigDict(env_prefix="CHANGE_")

    significant_threshold: float = 0.1
    major_threshold: float = 0.5


class RecommendationSettings(BaseSettings):
    """Best-yield ranking and insight thresholds.

    spike/cooling thresholds are absolute APY deltas (percentage points);
    stable_threshold bounds the percent change classified as a flat trend.
    """

    model_config = SettingsConfigDict(env_prefix="RECOMMENDATION_")

    spike_threshold: float = 0.15
    cooling_threshold: float = -0.10
    stable_threshold: float = 0.05
    trend_threshold: float = 0.05
    trend_window: int = 3
    history_length: int = 10


class CacheSettings(BaseSettings):
    """Optional Redis fast-path cache for per-asset snapshots."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"
    ttl_seconds: int = 30
    key_prefix: str = "yield:"


class HistorySettings(BaseSettings):
    """Optional SQLite yield history persistence."""

    model_config = SettingsConfigDict(env_prefix="HISTORY_")

    enabled: bool = True
    db_path: str = "data/yields.db"


class DashboardSettings(BaseSettings):
    """HTTP API and WebSocket server configuration."""

    model_config = SettingsConfigDict(env_prefix="DASHBOARD_")

    host: str = "0.0.0.0"
    port: int = 8080
    enabled: bool = True
    broadcast_queue_size: int = 256


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    chain: ChainSettings = ChainSettings()
    polling: PollingSettings = PollingSettings()
    ingestion: IngestionSettings = IngestionSettings()
    change_detection: ChangeDetectionSettings = ChangeDetectionSettings()
    recommendation: RecommendationSettings = RecommendationSettings()
    cache: CacheSettings = CacheSettings()
    history: HistorySettings = HistorySettings()
    dashboard: DashboardSettings = DashboardSettings()
