"""Configuration module for the trade history sync service."""

from .settings import (
    AppConfig,
    BinanceConfig,
    SyncConfig,
    StorageConfig,
    LockConfig,
    LoggingConfig,
)

__all__ = [
    "AppConfig",
    "BinanceConfig",
    "SyncConfig",
    "StorageConfig",
    "LockConfig",
    "LoggingConfig",
]
