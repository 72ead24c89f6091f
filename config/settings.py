"""
Configuration dataclasses for the trade history sync service.

All configuration parameters are defined here with sensible defaults.
Values can be overridden via config.yaml or environment variables.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Dict, Any


# ===========================================
# BINANCE API CONFIGURATION
# ===========================================

@dataclass
class BinanceConfig:
    """Binance API configuration."""

    rest_base_url: str = "https://api.binance.com"

    # Account trade list (signed, account specific)
    trades_endpoint: str = "/api/v3/myTrades"

    recv_window: int = 5000  # milliseconds
    request_timeout: int = 30  # seconds
    connect_retries: int = 2  # transport retries before a request reaches the exchange

    # Request weight budget (Binance: 6000 weight / minute per IP)
    weight_per_minute: int = 6000
    trades_weight: int = 20  # myTrades costs 20 weight
    rate_limit_buffer: float = 0.8  # Use 80% of capacity

    @property
    def weight_decay_rate(self) -> float:
        """Weight recovered per second."""
        return self.weight_per_minute / 60.0


# ===========================================
# SYNC ENGINE CONFIGURATION
# ===========================================

@dataclass
class SyncConfig:
    """Synchronization pass parameters."""

    max_items: int = 100  # Global cap per group per pass, all symbols combined
    request_delay: float = 0.5  # Fixed pause before every remote call (seconds)

    # Lock acquisition
    lock_retries: int = 5
    lock_retry_delay: float = 1.0

    # First-run cursor: 2017-01-01T00:00:00Z in seconds
    epoch_floor: int = 1483228800

    # Scheduler period
    sync_interval: float = 600.0  # 10 minutes

    default_ticker: str = "USDT"


# ===========================================
# STORAGE CONFIGURATION
# ===========================================

@dataclass
class StorageConfig:
    """Data storage paths and settings."""

    db_path: str = "data/trades.db"
    export_dir: Path = field(default_factory=lambda: Path("data/export"))

    # Parquet settings
    compression: str = "snappy"


@dataclass
class LockConfig:
    """Single-flight lock configuration."""

    lock_path: str = "data/sync.lock"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    file_path: str = "logs/sync.log"


# ===========================================
# MAIN CONFIGURATION
# ===========================================

@dataclass
class AppConfig:
    """Complete service configuration combining all sub-configs."""

    binance: BinanceConfig = field(default_factory=BinanceConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    lock: LockConfig = field(default_factory=LockConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Raw group declarations from the config file (parsed by tradesync.sync.groups)
    groups: List[Dict[str, Any]] = field(default_factory=list)

    def validate(self) -> List[str]:
        """
        Validate configuration and return list of errors.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if self.sync.max_items < 1:
            errors.append(f"sync.max_items must be positive, got {self.sync.max_items}")

        # Binance myTrades accepts at most 1000 rows per call
        if self.sync.max_items > 999:
            errors.append(
                f"sync.max_items must stay below 1000, got {self.sync.max_items}"
            )

        if self.sync.request_delay < 0:
            errors.append("sync.request_delay cannot be negative")

        if self.sync.lock_retries < 1:
            errors.append("sync.lock_retries must be at least 1")

        if self.sync.sync_interval <= 0:
            errors.append("sync.sync_interval must be positive")

        if not self.groups:
            errors.append("No groups declared - nothing to synchronize")

        return errors
