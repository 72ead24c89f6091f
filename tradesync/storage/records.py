"""Row types persisted by the trade store."""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class StoredRecord:
    """
    One trade row in a group's table.

    Immutable once appended; (pair, trade_id) is unique within a group.
    """

    trade_id: int
    order_id: int
    date: datetime
    pair: str
    order_type: str  # "LIMIT" or "STOP-LIMIT"
    side: str  # "BUY" or "SELL"
    price: Decimal
    amount: float
    commission: Decimal
    total: float

    def to_row(self) -> Dict[str, Any]:
        """Serialize to a storage row (Decimals as strings)."""
        return {
            "trade_id": self.trade_id,
            "order_id": self.order_id,
            "date": self.date.isoformat(),
            "pair": self.pair,
            "order_type": self.order_type,
            "side": self.side,
            "price": str(self.price),
            "amount": self.amount,
            "commission": str(self.commission),
            "total": self.total,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "StoredRecord":
        """Deserialize from a storage row."""
        date = datetime.fromisoformat(row["date"])
        if date.tzinfo is None:
            date = date.replace(tzinfo=timezone.utc)
        return cls(
            trade_id=int(row["trade_id"]),
            order_id=int(row["order_id"]),
            date=date,
            pair=row["pair"],
            order_type=row["order_type"],
            side=row["side"],
            price=Decimal(row["price"]),
            amount=float(row["amount"]),
            commission=Decimal(row["commission"]),
            total=float(row["total"]),
        )


@dataclass
class GroupState:
    """Header region of a group's table: status and derived counters."""

    name: str
    status: str = ""
    last_sync: Optional[datetime] = None
    record_count: int = 0
    pair_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "name": self.name,
            "status": self.status,
            "last_sync": self.last_sync.isoformat() if self.last_sync else None,
            "record_count": self.record_count,
            "pair_count": self.pair_count,
        }
