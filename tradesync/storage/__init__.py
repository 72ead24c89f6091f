"""Persistent storage for synchronized trade rows."""

from .records import StoredRecord, GroupState
from .trade_store import TradeStore

__all__ = [
    "StoredRecord",
    "GroupState",
    "TradeStore",
]
