"""
Tests for SyncCoordinator.

Tests:
- Full pass status sequence and stats refresh
- Per-group error isolation
- Lock retries, skip on exhaustion, single release
"""

import logging
import pytest
import tempfile
from pathlib import Path
from unittest.mock import Mock, patch

from config.settings import SyncConfig
from tradesync.core import (
    CoordinatorState,
    LockProvider,
    SyncCoordinator,
    STATUS_DONE,
)
from tradesync.storage import TradeStore
from tradesync.sync import RawTrade, RecordTransformer, StatsAggregator, TrackedGroup


def raw(trade_id, symbol="BTCUSDT"):
    return RawTrade(
        trade_id=trade_id,
        order_id=trade_id * 10,
        timestamp=1609459200000 + trade_id,
        symbol=symbol,
        is_maker=True,
        is_buyer=True,
        price="100.50",
        qty="2",
        commission="0.001",
    )


class TestSyncCoordinator:
    """Tests for pass orchestration."""

    @pytest.fixture
    def tmpdir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    @pytest.fixture
    def store(self, tmpdir):
        return TradeStore(str(tmpdir / "trades.db"))

    @pytest.fixture
    def fetcher(self):
        fetcher = Mock()
        fetcher.fetch.return_value = []
        return fetcher

    @pytest.fixture
    def sleep(self):
        return Mock()

    def make_coordinator(self, store, fetcher, lock_provider, sleep):
        return SyncCoordinator(
            store=store,
            fetcher=fetcher,
            transformer=RecordTransformer(),
            stats=StatsAggregator(store),
            lock_provider=lock_provider,
            config=SyncConfig(lock_retries=5, lock_retry_delay=1.0),
            sleep=sleep,
        )

    def test_pass_stores_and_updates_header(self, tmpdir, store, fetcher, sleep):
        """Test a successful pass appends rows and refreshes counters."""
        fetcher.fetch.return_value = [raw(1), raw(2, "ETHUSDT")]
        provider = LockProvider(str(tmpdir / "sync.lock"))
        coordinator = self.make_coordinator(store, fetcher, provider, sleep)
        group = TrackedGroup(name="main", symbols=["BTCUSDT", "ETHUSDT"])

        result = coordinator.run_pass([group])

        assert not result.skipped
        assert result.total_stored == 2
        assert result.groups[0].ok
        assert result.total_fetched == 2
        assert group.status == STATUS_DONE
        assert group.last_run is not None

        state = store.get_group_state("main")
        assert state.status == "done / waiting"
        assert state.record_count == 2
        assert state.pair_count == 2
        assert state.last_sync is not None

        assert coordinator.state == CoordinatorState.RELEASED
        assert not provider.lock_path.exists()

    def test_status_sequence(self, tmpdir, store, fetcher, sleep):
        """Test status cell goes fetching -> saving N -> done."""
        fetcher.fetch.return_value = [raw(1), raw(2), raw(3)]
        coordinator = self.make_coordinator(
            store, fetcher, LockProvider(str(tmpdir / "sync.lock")), sleep
        )

        with patch.object(store, "set_status", wraps=store.set_status) as set_status:
            coordinator.run_pass([TrackedGroup(name="main", symbols=["BTCUSDT"])])

        statuses = [c.args[1] for c in set_status.call_args_list]
        assert statuses == ["fetching data..", "saving 3 records..", "done / waiting"]

    def test_saving_status_written_before_append(self, tmpdir, store, fetcher, sleep):
        """Test the saving status is visible while rows are being appended."""
        fetcher.fetch.return_value = [raw(1)]
        coordinator = self.make_coordinator(
            store, fetcher, LockProvider(str(tmpdir / "sync.lock")), sleep
        )
        seen = []
        original = store.append_all

        def spy(group_name, records):
            seen.append(store.get_group_state(group_name).status)
            return original(group_name, records)

        with patch.object(store, "append_all", side_effect=spy):
            coordinator.run_pass([TrackedGroup(name="main", symbols=["BTCUSDT"])])

        assert seen == ["saving 1 records.."]

    def test_empty_fetch_touches_last_sync(self, tmpdir, store, fetcher, sleep):
        """Test an empty pass writes the heartbeat but keeps counters."""
        store.save_stats("main", 7, 2)
        coordinator = self.make_coordinator(
            store, fetcher, LockProvider(str(tmpdir / "sync.lock")), sleep
        )

        result = coordinator.run_pass([TrackedGroup(name="main", symbols=["BTCUSDT"])])

        state = store.get_group_state("main")
        assert result.total_stored == 0
        assert state.status == STATUS_DONE
        assert state.last_sync is not None
        assert state.record_count == 7

    def test_refetched_trades_count_as_fetched(self, tmpdir, store, fetcher, sleep):
        """Test already stored trades count as fetched but not stored."""
        store.append_all("main", RecordTransformer().transform([raw(1)]))
        fetcher.fetch.return_value = [raw(1)]
        coordinator = self.make_coordinator(
            store, fetcher, LockProvider(str(tmpdir / "sync.lock")), sleep
        )

        result = coordinator.run_pass([TrackedGroup(name="main", symbols=["BTCUSDT"])])

        assert result.total_fetched == 1
        assert result.total_stored == 0

    def test_group_error_isolated(self, tmpdir, store, fetcher, sleep):
        """Test one failing group does not stop the others."""
        fetcher.fetch.side_effect = [RuntimeError("boom"), [raw(1)]]
        coordinator = self.make_coordinator(
            store, fetcher, LockProvider(str(tmpdir / "sync.lock")), sleep
        )
        groups = [
            TrackedGroup(name="bad", symbols=["BTCUSDT"]),
            TrackedGroup(name="good", symbols=["BTCUSDT"]),
        ]

        result = coordinator.run_pass(groups)

        assert result.failed_groups == ["bad"]
        assert store.get_group_state("bad").status == "ERROR: boom"
        assert groups[0].status == "ERROR: boom"
        assert store.get_group_state("good").status == STATUS_DONE
        assert store.count_rows("good") == 1
        assert store.count_rows("bad") == 0

    def test_overlapping_trade_ids_across_pairs(self, tmpdir, store, fetcher, sleep):
        """Test pairs sharing trade ids are all stored and both cursors advance."""
        fetcher.fetch.return_value = (
            [raw(i) for i in range(1, 81)] + [raw(i, "ETHUSDT") for i in range(1, 21)]
        )
        coordinator = self.make_coordinator(
            store, fetcher, LockProvider(str(tmpdir / "sync.lock")), sleep
        )

        result = coordinator.run_pass([TrackedGroup(name="g", symbols=["BTCUSDT", "ETHUSDT"])])

        assert result.total_stored == 100
        assert store.count_rows("g") == 100
        assert store.last_matching("g", "ETHUSDT").trade_id == 20
        state = store.get_group_state("g")
        assert state.record_count == 100
        assert state.pair_count == 2

    def test_empty_group_list(self, tmpdir, store, fetcher, sleep):
        """Test a pass over no groups still takes and releases the lock."""
        provider = LockProvider(str(tmpdir / "sync.lock"))
        coordinator = self.make_coordinator(store, fetcher, provider, sleep)

        result = coordinator.run_pass([])

        assert result.groups == []
        assert not result.skipped
        assert not provider.lock_path.exists()

    def test_lock_busy_skips_pass(self, store, fetcher, sleep):
        """Test exhausted lock retries skip the pass silently."""
        provider = Mock()
        provider.try_acquire.return_value = None
        coordinator = self.make_coordinator(store, fetcher, provider, sleep)

        result = coordinator.run_pass([TrackedGroup(name="main", symbols=["BTCUSDT"])])

        assert result.skipped
        assert provider.try_acquire.call_count == 5
        assert sleep.call_count == 4
        sleep.assert_called_with(1.0)
        fetcher.fetch.assert_not_called()
        assert store.get_group_state("main") is None
        assert coordinator.state == CoordinatorState.IDLE
        provider.get_lock_info.assert_called_once()

    def test_lock_busy_names_holder(self, tmpdir, store, fetcher, sleep, caplog):
        """Test the skip warning identifies the process holding the lock."""
        provider = LockProvider(str(tmpdir / "sync.lock"))
        held = provider.try_acquire()
        coordinator = self.make_coordinator(store, fetcher, provider, sleep)

        with caplog.at_level(logging.WARNING):
            result = coordinator.run_pass([TrackedGroup(name="main", symbols=["BTCUSDT"])])

        assert result.skipped
        assert f"held by PID {held.info.pid}" in caplog.text
        held.release()

    def test_lock_acquired_after_retries(self, store, fetcher, sleep):
        """Test a lock freed during backoff lets the pass run."""
        lock = Mock()
        provider = Mock()
        provider.try_acquire.side_effect = [None, None, lock]
        coordinator = self.make_coordinator(store, fetcher, provider, sleep)

        result = coordinator.run_pass([TrackedGroup(name="main", symbols=["BTCUSDT"])])

        assert not result.skipped
        assert sleep.call_count == 2
        fetcher.fetch.assert_called_once()
        lock.release.assert_called_once()
        provider.get_lock_info.assert_not_called()

    def test_lock_released_once_on_unexpected_error(self, store, fetcher, sleep):
        """Test the lock is released even when iteration itself fails."""
        lock = Mock()
        provider = Mock()
        provider.try_acquire.return_value = lock
        coordinator = self.make_coordinator(store, fetcher, provider, sleep)

        def broken_groups():
            yield TrackedGroup(name="main", symbols=["BTCUSDT"])
            raise RuntimeError("declarations vanished")

        with pytest.raises(RuntimeError):
            coordinator.run_pass(broken_groups())

        lock.release.assert_called_once()
        assert coordinator.state == CoordinatorState.RELEASED

    def test_error_status_write_failure_logged(self, store, fetcher, sleep):
        """Test a failing status write does not escape the group handler."""
        lock = Mock()
        provider = Mock()
        provider.try_acquire.return_value = lock
        broken_store = Mock()
        broken_store.set_status.side_effect = OSError("disk full")
        coordinator = SyncCoordinator(
            store=broken_store,
            fetcher=fetcher,
            transformer=RecordTransformer(),
            stats=Mock(),
            lock_provider=provider,
            sleep=sleep,
        )

        result = coordinator.run_pass([TrackedGroup(name="main", symbols=["BTCUSDT"])])

        assert result.failed_groups == ["main"]
        lock.release.assert_called_once()
