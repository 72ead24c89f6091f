"""
Sync Coordinator - runs one synchronization pass across all groups.

Provides:
- Single-flight execution under the sync lock, with bounded retries
- Sequential per-group fetch -> transform -> append -> stats
- Per-group error isolation via the group's status cell
- Guaranteed lock release once acquired
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Callable, Iterable, List, Optional

from config.settings import SyncConfig
from tradesync.storage import TradeStore
from tradesync.sync import (
    PaginatedFetcher,
    RecordTransformer,
    StatsAggregator,
    TrackedGroup,
)
from .sync_lock import LockProvider, SyncLock

logger = logging.getLogger(__name__)

STATUS_FETCHING = "fetching data.."
STATUS_SAVING = "saving {count} records.."
STATUS_DONE = "done / waiting"
STATUS_ERROR = "ERROR: {message}"


class CoordinatorState(Enum):
    """Pass lifecycle states."""

    IDLE = auto()
    ACQUIRING_LOCK = auto()
    RETRY_BACKOFF = auto()
    RUNNING = auto()
    RELEASED = auto()


@dataclass
class GroupResult:
    """Outcome of one group within a pass."""

    name: str
    fetched: int = 0
    stored: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PassResult:
    """Outcome of one pass."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    skipped: bool = False
    groups: List[GroupResult] = field(default_factory=list)

    @property
    def total_fetched(self) -> int:
        return sum(group.fetched for group in self.groups)

    @property
    def total_stored(self) -> int:
        return sum(group.stored for group in self.groups)

    @property
    def failed_groups(self) -> List[str]:
        return [group.name for group in self.groups if not group.ok]


class SyncCoordinator:
    """
    Orchestrates a full pass under the sync lock.

    Usage:
        coordinator = SyncCoordinator(store, fetcher, transformer, stats, locks)
        result = coordinator.run_pass(groups)
        if result.skipped:
            ...  # lock stayed busy, next trigger will retry
    """

    def __init__(
        self,
        store: TradeStore,
        fetcher: PaginatedFetcher,
        transformer: RecordTransformer,
        stats: StatsAggregator,
        lock_provider: LockProvider,
        config: Optional[SyncConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._store = store
        self._fetcher = fetcher
        self._transformer = transformer
        self._stats = stats
        self._lock_provider = lock_provider
        self._config = config or SyncConfig()
        self._sleep = sleep

        self._state = CoordinatorState.IDLE

    @property
    def state(self) -> CoordinatorState:
        """Current lifecycle state."""
        return self._state

    def run_pass(self, groups: Iterable[TrackedGroup]) -> PassResult:
        """
        Run one synchronization pass over groups.

        If the lock cannot be acquired within the retry budget the pass is
        skipped: nothing is fetched and no status is written.
        """
        result = PassResult(started_at=datetime.now(timezone.utc))

        lock = self._acquire_lock()
        if lock is None:
            holder = self._lock_provider.get_lock_info()
            held_by = f" (held by PID {holder.pid} on {holder.hostname})" if holder else ""
            logger.warning(
                f"Sync lock still busy after {self._config.lock_retries} attempts"
                f"{held_by}, skipping this pass"
            )
            result.skipped = True
            result.finished_at = datetime.now(timezone.utc)
            self._state = CoordinatorState.IDLE
            return result

        self._state = CoordinatorState.RUNNING
        try:
            for group in groups:
                result.groups.append(self._sync_group(group))
        finally:
            lock.release()
            self._state = CoordinatorState.RELEASED

        result.finished_at = datetime.now(timezone.utc)
        logger.info(
            f"Sync pass complete: {result.total_stored} new trade(s) across "
            f"{len(result.groups)} group(s)"
            + (f", failed: {', '.join(result.failed_groups)}" if result.failed_groups else "")
        )
        return result

    def _acquire_lock(self) -> Optional[SyncLock]:
        """Bounded acquisition loop with a fixed pause between attempts."""
        attempts = max(1, self._config.lock_retries)

        for attempt in range(1, attempts + 1):
            self._state = CoordinatorState.ACQUIRING_LOCK
            lock = self._lock_provider.try_acquire()
            if lock is not None:
                return lock

            if attempt < attempts:
                self._state = CoordinatorState.RETRY_BACKOFF
                logger.info(
                    f"Sync lock busy, attempt {attempt}/{attempts}, "
                    f"retrying in {self._config.lock_retry_delay}s"
                )
                self._sleep(self._config.lock_retry_delay)

        return None

    def _sync_group(self, group: TrackedGroup) -> GroupResult:
        """Process one group; any failure ends up in its status cell."""
        outcome = GroupResult(name=group.name)

        try:
            self._set_status(group, STATUS_FETCHING)
            raw_trades = self._fetcher.fetch(group)
            records = self._transformer.transform(raw_trades)
            outcome.fetched = len(records)

            self._set_status(group, STATUS_SAVING.format(count=len(records)))
            outcome.stored = self._store.append_all(group.name, records)
            self._set_status(group, STATUS_DONE)

            if records:
                self._stats.recompute(group.name)
            else:
                self._stats.touch(group.name)
            group.last_run = datetime.now(timezone.utc)

            if outcome.stored:
                logger.info(f"[{group.name}] stored {outcome.stored} new trade(s)")

        except Exception as e:
            logger.error(f"[{group.name}] sync failed: {e}")
            outcome.error = str(e)
            try:
                self._set_status(group, STATUS_ERROR.format(message=e))
            except Exception as status_error:
                logger.error(f"[{group.name}] could not record error status: {status_error}")

        return outcome

    def _set_status(self, group: TrackedGroup, status: str) -> None:
        group.status = status
        self._store.set_status(group.name, status)
