"""
Per-symbol resume positions.

A cursor tells the fetcher where to continue for one pair:
- ID: the trade id of the most recent stored row for that pair
- TIME: a fixed epoch floor, used only when nothing is stored yet
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict

from tradesync.storage import TradeStore
from .groups import TrackedGroup

logger = logging.getLogger(__name__)

# 2017-01-01T00:00:00Z, exchange launch
EPOCH_FLOOR = 1483228800


class CursorKind(Enum):
    """How a cursor filters the remote query."""
    ID = "fromId"
    TIME = "startTime"


@dataclass(frozen=True)
class Cursor:
    """Resume position for one symbol."""

    kind: CursorKind
    value: int

    @property
    def is_id(self) -> bool:
        return self.kind == CursorKind.ID

    def as_params(self) -> Dict[str, int]:
        """Query filter for this cursor, e.g. {"fromId": 42}."""
        return {self.kind.value: self.value}


class CursorResolver:
    """Derives cursors from what the store already holds."""

    def __init__(self, store: TradeStore, epoch_floor: int = EPOCH_FLOOR):
        self._store = store
        self._epoch_floor = epoch_floor

    def resolve(self, group: TrackedGroup, symbol: str) -> Cursor:
        """
        Resolve the resume position of symbol within group.

        Absence of data is the normal first-run case and yields the
        epoch-floor TIME cursor.
        """
        last = self._store.last_matching(group.name, symbol)

        if last is None:
            logger.debug(f"[{group.name}] {symbol}: no stored trades, starting at {self._epoch_floor}")
            return Cursor(CursorKind.TIME, self._epoch_floor)

        return Cursor(CursorKind.ID, last.trade_id)
