"""
Tests for Trade Store module.

Tests:
- Header region (registration, status, counters)
- Append-only rows and duplicate handling
- Last-row lookup per pair
- DataFrame read-back and Parquet export
"""

import pytest
import tempfile
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pandas as pd
import pyarrow.parquet as pq

from tradesync.storage import GroupState, StoredRecord, TradeStore


def make_record(trade_id, pair="BTCUSDT", price="100.50", amount=2.0):
    return StoredRecord(
        trade_id=trade_id,
        order_id=trade_id * 10,
        date=datetime(2021, 1, 1, 12, 0, trade_id % 60, tzinfo=timezone.utc),
        pair=pair,
        order_type="LIMIT",
        side="BUY",
        price=Decimal(price),
        amount=amount,
        commission=Decimal("0.00010000"),
        total=float(Decimal(price)) * amount,
    )


class TestStoredRecord:
    """Tests for StoredRecord serialization."""

    def test_row_keeps_decimal_text(self):
        """Test Decimals are stored as their exact text."""
        row = make_record(1).to_row()

        assert row["price"] == "100.50"
        assert row["commission"] == "0.00010000"
        assert row["date"] == "2021-01-01T12:00:01+00:00"

    def test_from_row(self):
        """Test deserialization restores types."""
        original = make_record(7)
        restored = StoredRecord.from_row(original.to_row())

        assert restored == original
        assert restored.date.tzinfo is not None

    def test_from_row_naive_date_is_utc(self):
        row = make_record(1).to_row()
        row["date"] = "2021-01-01T12:00:01"

        assert StoredRecord.from_row(row).date.tzinfo == timezone.utc


class TestTradeStore:
    """Tests for TradeStore class."""

    @pytest.fixture
    def store(self):
        """Create store with temp database."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield TradeStore(str(Path(tmpdir) / "trades.db"))

    def test_register_group(self, store):
        """Test registering creates an empty header."""
        store.register_group("main", ["BTCUSDT"], "USDT")

        state = store.get_group_state("main")
        assert state == GroupState(name="main")
        assert store.list_groups() == ["main"]

    def test_register_keeps_status(self, store):
        """Test re-registration does not reset the header cells."""
        store.register_group("main", ["BTCUSDT"], "USDT")
        store.set_status("main", "done / waiting")
        store.save_stats("main", 3, 1)

        store.register_group("main", ["BTCUSDT", "ETHUSDT"], "USDT")

        state = store.get_group_state("main")
        assert state.status == "done / waiting"
        assert state.record_count == 3
        assert state.pair_count == 1

    def test_unknown_group_state(self, store):
        assert store.get_group_state("missing") is None

    def test_status_creates_header(self, store):
        """Test header cells can be written for an unregistered group."""
        store.set_status("adhoc", "fetching data..")

        assert store.get_group_state("adhoc").status == "fetching data.."

    def test_last_sync_roundtrip(self, store):
        ts = datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)
        store.set_last_sync("main", ts)

        assert store.get_group_state("main").last_sync == ts

    def test_append_and_read(self, store):
        """Test rows come back in append order."""
        inserted = store.append_all("main", [make_record(3), make_record(1), make_record(2)])

        assert inserted == 3
        assert store.count_rows("main") == 3
        assert [r.trade_id for r in store.get_records("main")] == [3, 1, 2]

    def test_duplicate_trade_skipped(self, store):
        """Test an already stored trade id is not appended twice."""
        store.append_all("main", [make_record(1)])

        inserted = store.append_all("main", [make_record(1), make_record(2)])

        assert inserted == 1
        assert store.count_rows("main") == 2

    def test_same_trade_in_two_groups(self, store):
        """Test uniqueness is per group."""
        store.append_all("a", [make_record(1)])
        store.append_all("b", [make_record(1)])

        assert store.count_rows("a") == 1
        assert store.count_rows("b") == 1

    def test_same_trade_id_on_two_pairs(self, store):
        """Test trade ids are unique per pair, not per group."""
        inserted = store.append_all(
            "main",
            [make_record(i) for i in range(1, 81)]
            + [make_record(i, "ETHUSDT") for i in range(1, 21)],
        )

        assert inserted == 100
        assert store.count_rows("main") == 100
        assert store.last_matching("main", "BTCUSDT").trade_id == 80
        assert store.last_matching("main", "ETHUSDT").trade_id == 20

    def test_duplicate_is_per_pair(self, store):
        """Test a re-append of one pair's trade is skipped, other pairs unaffected."""
        store.append_all("main", [make_record(7), make_record(7, "ETHUSDT")])

        inserted = store.append_all("main", [make_record(7, "ETHUSDT"), make_record(7, "BNBUSDT")])

        assert inserted == 1
        assert store.pair_values("main") == ["BTCUSDT", "ETHUSDT", "BNBUSDT"]

    def test_header_timestamps_are_utc(self, store):
        """Test header bookkeeping timestamps carry a UTC offset."""
        store.register_group("main", ["BTCUSDT"], "USDT")

        with store._get_connection() as conn:
            updated_at = conn.execute(
                "SELECT updated_at FROM groups WHERE name = ?", ("main",)
            ).fetchone()["updated_at"]

        assert datetime.fromisoformat(updated_at).tzinfo is not None

    def test_last_matching(self, store):
        """Test the last appended row of the pair is returned."""
        store.append_all("main", [
            make_record(10),
            make_record(20, "ETHUSDT"),
            make_record(11),
            make_record(21, "ETHUSDT"),
        ])

        assert store.last_matching("main", "BTCUSDT").trade_id == 11
        assert store.last_matching("main", "ETHUSDT").trade_id == 21
        assert store.last_matching("main", "BNBUSDT") is None

    def test_last_matching_uses_append_order(self, store):
        """Test row order wins over trade id order."""
        store.append_all("main", [make_record(50), make_record(5)])

        assert store.last_matching("main", "BTCUSDT").trade_id == 5

    def test_pair_values(self, store):
        store.append_all("main", [make_record(1), make_record(2, "ETHUSDT")])

        assert store.pair_values("main") == ["BTCUSDT", "ETHUSDT"]

    def test_load_trades(self, store):
        """Test DataFrame read-back."""
        store.append_all("main", [make_record(1), make_record(2, "ETHUSDT")])

        df = store.load_trades("main")

        assert list(df.columns) == TradeStore.COLUMNS
        assert len(df) == 2
        assert df["pair"].tolist() == ["BTCUSDT", "ETHUSDT"]
        assert df["date"].iloc[0] == pd.Timestamp("2021-01-01T12:00:01", tz="UTC")
        assert df["price"].iloc[0] == "100.50"

    def test_load_trades_empty(self, store):
        df = store.load_trades("main")

        assert df.empty
        assert list(df.columns) == TradeStore.COLUMNS

    def test_export_parquet(self, store):
        """Test Parquet export writes every row with numeric prices."""
        store.append_all("main", [make_record(1), make_record(2)])

        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "out" / "main.parquet"
            count = store.export_parquet("main", path)

            table = pq.read_table(path)

        assert count == 2
        assert table.num_rows == 2
        assert table.column("price").to_pylist() == [100.5, 100.5]
        assert table.schema.field("date").type.tz == "UTC"

    def test_export_parquet_empty(self, store):
        """Test exporting an empty group writes a schema-only file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "empty.parquet"
            count = store.export_parquet("main", path)

            table = pq.read_table(path)

        assert count == 0
        assert table.num_rows == 0
        assert table.schema.names == TradeStore.COLUMNS
