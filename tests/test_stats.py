"""
Tests for StatsAggregator.
"""

import pytest
import tempfile
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

from tradesync.storage import StoredRecord, TradeStore
from tradesync.sync import StatsAggregator


NOW = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)


def make_record(trade_id, pair):
    return StoredRecord(
        trade_id=trade_id,
        order_id=trade_id,
        date=NOW,
        pair=pair,
        order_type="LIMIT",
        side="BUY",
        price=Decimal("1"),
        amount=1.0,
        commission=Decimal("0"),
        total=1.0,
    )


class TestStatsAggregator:
    """Tests for derived group counters."""

    @pytest.fixture
    def store(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yield TradeStore(str(Path(tmpdir) / "trades.db"))

    def test_recompute(self, store):
        """Test record and distinct pair counts."""
        store.append_all("main", [
            make_record(1, "BTCUSDT"),
            make_record(2, "ETHUSDT"),
            make_record(3, "BTCUSDT"),
        ])

        stats = StatsAggregator(store, clock=lambda: NOW).recompute("main")

        assert stats.record_count == 3
        assert stats.pair_count == 2
        assert stats.last_sync == NOW

        state = store.get_group_state("main")
        assert state.record_count == 3
        assert state.pair_count == 2
        assert state.last_sync == NOW

    def test_empty_pairs_not_counted(self, store):
        """Test rows with an empty pair are ignored."""
        store.append_all("main", [make_record(1, "BTCUSDT"), make_record(2, "")])

        stats = StatsAggregator(store, clock=lambda: NOW).recompute("main")

        assert stats.record_count == 1
        assert stats.pair_count == 1

    def test_recompute_empty_group(self, store):
        stats = StatsAggregator(store, clock=lambda: NOW).recompute("main")

        assert stats.record_count == 0
        assert stats.pair_count == 0

    def test_touch_only_updates_last_sync(self, store):
        """Test the heartbeat leaves counters alone."""
        store.save_stats("main", 5, 2)

        StatsAggregator(store, clock=lambda: NOW).touch("main")

        state = store.get_group_state("main")
        assert state.last_sync == NOW
        assert state.record_count == 5
        assert state.pair_count == 2
