"""
Sync job descriptor.

SyncJob is what a scheduler or CLI holds on to: it names the job, states
its period, runs a full pass, and validates single group declarations
on demand. It keeps no state of its own between calls.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from config.settings import AppConfig, SyncConfig
from tradesync.api.binance_client import BinanceClient
from tradesync.api.rate_limiter import RateLimitConfig, SyncRateLimiter
from tradesync.storage import TradeStore
from tradesync.sync import (
    ConfigurationError,
    CursorResolver,
    GroupDeclaration,
    PaginatedFetcher,
    RecordTransformer,
    StatsAggregator,
    TrackedGroup,
    build_group,
)
from .coordinator import PassResult, SyncCoordinator
from .sync_lock import LockProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncJob:
    """Binds declarations, store and coordinator into a runnable job."""

    coordinator: SyncCoordinator
    store: TradeStore
    declarations: Sequence[GroupDeclaration]
    config: SyncConfig

    def tag(self) -> str:
        return "trades_table"

    def period(self) -> float:
        """Seconds between scheduled passes."""
        return self.config.sync_interval

    def execute(self, declaration: GroupDeclaration) -> TrackedGroup:
        """
        Validate one declaration and register its group's header region.

        Raises:
            ConfigurationError: If the declaration is invalid
        """
        group = build_group(declaration, self.config.default_ticker)
        self.store.register_group(group.name, group.symbols, group.ticker)

        state = self.store.get_group_state(group.name)
        if state is not None:
            group.status = state.status
            group.last_run = state.last_sync

        logger.debug(f"[{group.name}] tracking {', '.join(group.symbols)}")
        return group

    def groups(self) -> List[TrackedGroup]:
        """
        Validate and register every declared group.

        Raises:
            ConfigurationError: On an invalid or duplicate declaration
        """
        names = [declaration.name for declaration in self.declarations]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(f"Group(s) declared twice: {', '.join(duplicates)}")

        return [self.execute(declaration) for declaration in self.declarations]

    def run(self) -> PassResult:
        """
        Run one full pass.

        Declarations are validated before the lock is requested, so a
        configuration error never holds the lock.
        """
        return self.coordinator.run_pass(self.groups())


def create_job(
    config: AppConfig,
    client: Optional[BinanceClient] = None,
    store: Optional[TradeStore] = None,
) -> SyncJob:
    """
    Wire a SyncJob from configuration.

    Args:
        config: Complete service configuration
        client: Binance client (created from environment if not provided)
        store: Trade store (created at config.storage.db_path if not provided)
    """
    if client is None:
        client = BinanceClient.from_env(
            base_url=config.binance.rest_base_url,
            timeout=config.binance.request_timeout,
            recv_window=config.binance.recv_window,
            connect_retries=config.binance.connect_retries,
        )
    if store is None:
        store = TradeStore(config.storage.db_path)

    limiter = SyncRateLimiter.from_config(
        RateLimitConfig(
            max_weight=config.binance.weight_per_minute,
            decay_rate=config.binance.weight_decay_rate,
            min_delay=config.sync.request_delay,
            buffer=config.binance.rate_limit_buffer,
        )
    )
    resolver = CursorResolver(store, epoch_floor=config.sync.epoch_floor)
    fetcher = PaginatedFetcher(
        client,
        resolver,
        limiter,
        config.sync,
        endpoint=config.binance.trades_endpoint,
        request_weight=config.binance.trades_weight,
    )

    coordinator = SyncCoordinator(
        store=store,
        fetcher=fetcher,
        transformer=RecordTransformer(),
        stats=StatsAggregator(store),
        lock_provider=LockProvider(config.lock.lock_path),
        config=config.sync,
    )

    return SyncJob(
        coordinator=coordinator,
        store=store,
        declarations=tuple(GroupDeclaration.from_dict(data) for data in config.groups),
        config=config.sync,
    )
