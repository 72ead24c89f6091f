"""
Single-flight lock for sync passes.

Provides PID-based file locking so that only one sync pass runs at a
time for a given lock path, whether the competing pass comes from the
scheduler, a backfill run, or a second process.

Usage:
    from tradesync.core.sync_lock import LockProvider

    provider = LockProvider("data/sync.lock")
    lock = provider.try_acquire()
    if lock is None:
        return  # another pass is running

    try:
        # Run pass...
    finally:
        lock.release()
"""

import json
import logging
import os
import socket
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass
class LockInfo:
    """Information stored in the lock file."""

    pid: int
    started_at: datetime
    hostname: str

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {
            "pid": self.pid,
            "started_at": self.started_at.isoformat(),
            "hostname": self.hostname,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LockInfo":
        """Deserialize from dictionary."""
        return cls(
            pid=data["pid"],
            started_at=datetime.fromisoformat(data["started_at"]),
            hostname=data.get("hostname", "unknown"),
        )


class SyncLock:
    """
    Handle to an acquired lock.

    release() removes the lock file once; later calls are no-ops.
    """

    def __init__(self, lock_path: Path, info: LockInfo):
        self._lock_path = lock_path
        self._info = info
        self._held = True

    @property
    def info(self) -> LockInfo:
        return self._info

    @property
    def held(self) -> bool:
        return self._held

    def release(self) -> bool:
        """
        Release the lock.

        Returns:
            True if this call released it, False if it was already released
        """
        if not self._held:
            logger.warning("Sync lock already released")
            return False

        self._held = False
        try:
            # Verify we still own the lock before deleting
            if self._lock_path.exists():
                with open(self._lock_path, "r") as f:
                    data = json.load(f)
                if data.get("pid") == self._info.pid and data.get("started_at") == self._info.started_at.isoformat():
                    self._lock_path.unlink()
                    logger.debug("Released sync lock")
                else:
                    logger.warning("Lock was taken over by another owner, not removing")
            return True
        except (IOError, json.JSONDecodeError) as e:
            logger.error(f"Error releasing sync lock: {e}")
            return True

    def __enter__(self) -> "SyncLock":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._held:
            self.release()


class LockProvider:
    """
    Creates SyncLock handles for one lock path.

    The lock file is created atomically (O_EXCL); a file left behind by
    a dead process is treated as stale and replaced.
    """

    def __init__(self, lock_path: str = "data/sync.lock"):
        """
        Initialize lock provider.

        Args:
            lock_path: Path to the lock file
        """
        self._lock_path = Path(lock_path)
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def lock_path(self) -> Path:
        """Get the lock file path."""
        return self._lock_path

    @staticmethod
    def is_process_alive(pid: int) -> bool:
        """Check if a process with the given PID is still running."""
        try:
            # Signal 0 doesn't kill the process, just checks if it exists
            os.kill(pid, 0)
            return True
        except OSError:
            return False

    def is_locked(self) -> Tuple[bool, Optional[LockInfo]]:
        """
        Check if the lock is currently held.

        Returns:
            Tuple of (is_locked, lock_info)
        """
        if not self._lock_path.exists():
            return False, None

        try:
            with open(self._lock_path, "r") as f:
                lock_info = LockInfo.from_dict(json.load(f))
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            logger.warning(f"Corrupted lock file: {e}")
            return False, None
        except FileNotFoundError:
            return False, None

        if self.is_process_alive(lock_info.pid):
            return True, lock_info

        logger.info(f"Found stale lock from dead process {lock_info.pid}")
        return False, lock_info

    def try_acquire(self) -> Optional[SyncLock]:
        """
        Make one attempt to acquire the lock.

        Returns:
            SyncLock on success, None if another live owner holds it
        """
        locked, lock_info = self.is_locked()
        if locked:
            logger.debug(
                f"Sync lock busy (PID {lock_info.pid}, started {lock_info.started_at})"
            )
            return None

        if self._lock_path.exists():
            # Stale or corrupted
            self._lock_path.unlink(missing_ok=True)

        info = LockInfo(
            pid=os.getpid(),
            started_at=datetime.now(timezone.utc),
            hostname=socket.gethostname(),
        )

        try:
            fd = os.open(self._lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            # Lost the race to another acquirer
            return None

        with os.fdopen(fd, "w") as f:
            json.dump(info.to_dict(), f, indent=2)

        logger.debug(f"Acquired sync lock (PID {info.pid})")
        return SyncLock(self._lock_path, info)

    def get_lock_info(self) -> Optional[LockInfo]:
        """Information about the current lock holder, if any."""
        _, lock_info = self.is_locked()
        return lock_info
