"""Normalization of raw exchange trades into stored rows."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List

from tradesync.storage import StoredRecord
from .fetcher import RawTrade


def parse_decimal(value: str) -> Decimal:
    """Parse an exchange decimal string exactly."""
    return Decimal(str(value).strip() or "0")


class RecordTransformer:
    """
    Maps RawTrade -> StoredRecord.

    Pure and order preserving; every input yields exactly one row.
    """

    MAKER_LABEL = "LIMIT"
    TAKER_LABEL = "STOP-LIMIT"

    def transform(self, trades: Iterable[RawTrade]) -> List[StoredRecord]:
        return [self.transform_one(trade) for trade in trades]

    def transform_one(self, trade: RawTrade) -> StoredRecord:
        price = parse_decimal(trade.price)
        amount = float(trade.qty)

        return StoredRecord(
            trade_id=trade.trade_id,
            order_id=trade.order_id,
            date=datetime.fromtimestamp(trade.timestamp / 1000, tz=timezone.utc),
            pair=trade.symbol,
            order_type=self.MAKER_LABEL if trade.is_maker else self.TAKER_LABEL,
            side="BUY" if trade.is_buyer else "SELL",
            price=price,
            amount=amount,
            commission=parse_decimal(trade.commission),
            total=float(price) * amount,
        )
