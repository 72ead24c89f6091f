"""
Configuration loader for the trade history sync service.

Loads configuration from:
1. YAML file (config/config.yaml)
2. Environment variables (TRADESYNC_* prefix)
3. .env file (via python-dotenv)

Environment variables override YAML values.
API credentials MUST be set via environment (never in YAML).
"""

import os
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from config.settings import (
    AppConfig,
    BinanceConfig,
    SyncConfig,
    StorageConfig,
    LockConfig,
    LoggingConfig,
)

logger = logging.getLogger(__name__)


class ConfigLoader:
    """
    Loads and validates service configuration.

    Configuration priority (highest to lowest):
    1. Environment variables (TRADESYNC_*)
    2. YAML config file
    3. Default values in dataclasses
    """

    ENV_PREFIX = "TRADESYNC_"

    def __init__(
        self,
        config_path: Optional[str] = None,
        env_file: Optional[str] = None,
    ):
        """
        Initialize config loader.

        Args:
            config_path: Path to YAML config file. If None, uses config/config.yaml
            env_file: Path to .env file. If None, uses .env in project root
        """
        self._config_path = Path(config_path) if config_path else Path("config/config.yaml")
        self._env_file = Path(env_file) if env_file else Path(".env")

        if self._env_file.exists():
            load_dotenv(self._env_file)
            logger.debug(f"Loaded environment from {self._env_file}")

    def load(self) -> AppConfig:
        """
        Load complete service configuration.

        Returns:
            AppConfig with all settings populated
        """
        yaml_config = self._load_yaml()
        config = self._build_config(yaml_config)

        errors = config.validate()
        if errors:
            for error in errors:
                logger.warning(f"Config warning: {error}")

        return config

    def _load_yaml(self) -> Dict[str, Any]:
        """Load YAML configuration file."""
        if not self._config_path.exists():
            logger.warning(f"Config file not found: {self._config_path}, using defaults")
            return {}

        with open(self._config_path) as f:
            config = yaml.safe_load(f) or {}

        logger.info(f"Loaded config from {self._config_path}")
        return config

    def _get_env(self, key: str, default: Any = None) -> Any:
        """
        Get environment variable with TRADESYNC_ prefix.

        Args:
            key: Variable name (without prefix)
            default: Default value if not set

        Returns:
            Environment variable value or default
        """
        full_key = f"{self.ENV_PREFIX}{key}"
        value = os.environ.get(full_key)

        if value is None:
            return default

        # Type conversion based on default type
        if isinstance(default, bool):
            return value.lower() in ("true", "1", "yes")
        elif isinstance(default, int):
            return int(value)
        elif isinstance(default, float):
            return float(value)

        return value

    def _build_config(self, yaml_config: Dict[str, Any]) -> AppConfig:
        """Build AppConfig from YAML and environment."""

        binance_yaml = yaml_config.get("api", {})
        binance = BinanceConfig(
            rest_base_url=self._get_env(
                "BASE_URL",
                binance_yaml.get("base_url", "https://api.binance.com"),
            ),
            recv_window=binance_yaml.get("recv_window", 5000),
            request_timeout=self._get_env(
                "REQUEST_TIMEOUT",
                binance_yaml.get("request_timeout", 30),
            ),
            connect_retries=binance_yaml.get("connect_retries", 2),
            weight_per_minute=binance_yaml.get("weight_per_minute", 6000),
            rate_limit_buffer=binance_yaml.get("rate_limit_buffer", 0.8),
        )

        sync_yaml = yaml_config.get("sync", {})
        sync = SyncConfig(
            max_items=self._get_env("MAX_ITEMS", sync_yaml.get("max_items", 100)),
            request_delay=self._get_env(
                "REQUEST_DELAY",
                float(sync_yaml.get("request_delay", 0.5)),
            ),
            lock_retries=sync_yaml.get("lock_retries", 5),
            lock_retry_delay=float(sync_yaml.get("lock_retry_delay", 1.0)),
            epoch_floor=sync_yaml.get("epoch_floor", 1483228800),
            sync_interval=self._get_env(
                "SYNC_INTERVAL",
                float(sync_yaml.get("sync_interval", 600.0)),
            ),
            default_ticker=sync_yaml.get("default_ticker", "USDT"),
        )

        storage_yaml = yaml_config.get("storage", {})
        storage = StorageConfig(
            db_path=self._get_env("DB_PATH", storage_yaml.get("db_path", "data/trades.db")),
            export_dir=Path(storage_yaml.get("export_dir", "data/export")),
            compression=storage_yaml.get("compression", "snappy"),
        )

        lock_yaml = yaml_config.get("lock", {})
        lock = LockConfig(
            lock_path=self._get_env("LOCK_PATH", lock_yaml.get("path", "data/sync.lock")),
        )

        logging_yaml = yaml_config.get("logging", {})
        log_config = LoggingConfig(
            level=self._get_env("LOG_LEVEL", logging_yaml.get("level", "INFO")),
            file_path=logging_yaml.get("file_path", "logs/sync.log"),
        )

        return AppConfig(
            binance=binance,
            sync=sync,
            storage=storage,
            lock=lock,
            logging=log_config,
            groups=list(yaml_config.get("groups", []) or []),
        )
