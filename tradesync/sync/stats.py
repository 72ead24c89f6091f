"""
Derived per-group counters.

Counters are recomputed from the stored rows after each non-empty
append; they are never read back as input to fetching.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from tradesync.storage import TradeStore

logger = logging.getLogger(__name__)


@dataclass
class GroupStats:
    """Summary counters of a group's table."""

    record_count: int = 0
    pair_count: int = 0
    last_sync: Optional[datetime] = None


class StatsAggregator:
    """Recomputes record and distinct-pair counts for a group."""

    def __init__(
        self,
        store: TradeStore,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._store = store
        self._clock = clock

    def recompute(self, group_name: str) -> GroupStats:
        """
        Scan all stored pairs of a group and persist fresh counters.

        Empty pair values are not counted.
        """
        record_count = 0
        pairs = set()

        for pair in self._store.pair_values(group_name):
            if not pair:
                continue
            record_count += 1
            pairs.add(pair)

        self._store.save_stats(group_name, record_count, len(pairs))
        stats = GroupStats(
            record_count=record_count,
            pair_count=len(pairs),
            last_sync=self.touch(group_name),
        )

        logger.debug(
            f"[{group_name}] stats: {stats.record_count} records, {stats.pair_count} pairs"
        )
        return stats

    def touch(self, group_name: str) -> datetime:
        """Update the last-sync timestamp only (heartbeat for empty passes)."""
        now = self._clock()
        self._store.set_last_sync(group_name, now)
        return now
