"""
Capped, rate-limited retrieval of account trades.

Walks a group's symbols in declaration order and pulls new trades from
/api/v3/myTrades starting at each symbol's cursor. The cap is global to
the group: once it is used up, later symbols wait for the next pass.

Usage:
    fetcher = PaginatedFetcher(client, resolver, limiter, SyncConfig())
    raw_trades = fetcher.fetch(group)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from config.settings import SyncConfig
from tradesync.api.binance_client import BinanceClient
from tradesync.api.rate_limiter import SyncRateLimiter
from .cursor import CursorResolver
from .groups import TrackedGroup

logger = logging.getLogger(__name__)


@dataclass
class RawTrade:
    """Trade as returned by the exchange, fields still in wire format."""

    trade_id: int
    order_id: int
    timestamp: int  # Unix milliseconds
    symbol: str
    is_maker: bool
    is_buyer: bool
    price: str
    qty: str
    commission: str
    commission_asset: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RawTrade":
        """Parse one element of a myTrades response."""
        return cls(
            trade_id=int(data["id"]),
            order_id=int(data["orderId"]),
            timestamp=int(data["time"]),
            symbol=data["symbol"],
            is_maker=bool(data["isMaker"]),
            is_buyer=bool(data["isBuyer"]),
            price=str(data["price"]),
            qty=str(data["qty"]),
            commission=str(data.get("commission", "0")),
            commission_asset=data.get("commissionAsset", ""),
        )


class PaginatedFetcher:
    """
    Fetches new trades for every symbol of a group under a global cap.

    Every remote call is preceded by the limiter's fixed delay, calls
    are strictly sequential, and responses are never served from cache.
    """

    def __init__(
        self,
        client: BinanceClient,
        resolver: CursorResolver,
        limiter: SyncRateLimiter,
        config: Optional[SyncConfig] = None,
        endpoint: str = "/api/v3/myTrades",
        request_weight: int = 20,
    ):
        """
        Initialize fetcher.

        Args:
            client: Signed Binance client
            resolver: Cursor resolver backed by the group's store
            limiter: Rate limiter applying the fixed pre-call delay
            config: Sync parameters (cap)
            endpoint: Account trade list path
            request_weight: Weight charged per call
        """
        self._client = client
        self._resolver = resolver
        self._limiter = limiter
        self._config = config or SyncConfig()
        self._endpoint = endpoint
        self._request_weight = request_weight

    @property
    def max_items(self) -> int:
        return self._config.max_items

    def fetch(self, group: TrackedGroup) -> List[RawTrade]:
        """
        Retrieve up to max_items new trades across all of group's symbols.

        Returns:
            Trades in fetch order: ascending per symbol, symbols in group order

        Raises:
            BinanceAPIError: If a request fails after its retry budget
        """
        max_items = self._config.max_items
        accumulated: List[RawTrade] = []

        for index, symbol in enumerate(group.symbols):
            if len(accumulated) >= max_items:
                skipped = group.symbols[index:]
                logger.info(
                    f"[{group.name}] cap of {max_items} reached, "
                    f"deferring {len(skipped)} symbol(s): {', '.join(skipped)}"
                )
                break

            cursor = self._resolver.resolve(group, symbol)
            limit = max_items - len(accumulated)
            if cursor.is_id:
                # The anchor trade comes back first and is discarded
                limit += 1

            params: Dict[str, Any] = {"limit": limit, "symbol": symbol}
            params.update(cursor.as_params())

            self._limiter.acquire(self._request_weight)
            response = self._client.get(
                self._endpoint,
                params,
                no_cache=True,
                allow_stale=False,
                retries=len(group.symbols) - index,
            )

            trades = [RawTrade.from_api(item) for item in response or []]
            if cursor.is_id and trades and trades[0].trade_id == cursor.value:
                trades = trades[1:]

            logger.debug(
                f"[{group.name}] {symbol}: {len(trades)} new trade(s) "
                f"from {cursor.kind.value}={cursor.value}"
            )
            accumulated.extend(trades)

        return accumulated[:max_items]
