"""
Core Sync Module.

Provides:
- Single-flight sync lock
- Pass coordinator with per-group error isolation
- Job descriptor and wiring
- Periodic scheduling
"""

from .sync_lock import (
    LockInfo,
    LockProvider,
    SyncLock,
)
from .coordinator import (
    CoordinatorState,
    GroupResult,
    PassResult,
    SyncCoordinator,
    STATUS_DONE,
    STATUS_ERROR,
    STATUS_FETCHING,
    STATUS_SAVING,
)
from .job import SyncJob, create_job
from .scheduler import run_once, run_periodic, run_until_caught_up

__all__ = [
    # Lock
    "LockInfo",
    "LockProvider",
    "SyncLock",
    # Coordinator
    "CoordinatorState",
    "GroupResult",
    "PassResult",
    "SyncCoordinator",
    "STATUS_DONE",
    "STATUS_ERROR",
    "STATUS_FETCHING",
    "STATUS_SAVING",
    # Job
    "SyncJob",
    "create_job",
    # Scheduling
    "run_once",
    "run_periodic",
    "run_until_caught_up",
]
