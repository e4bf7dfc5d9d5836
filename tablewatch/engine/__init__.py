"""Active components: the poll scheduler and the snapshot poller."""

from tablewatch.engine.scheduler import PollScheduler
from tablewatch.engine.poller import SnapshotPoller, WatchUpdate, derive_update

__all__ = ["PollScheduler", "SnapshotPoller", "WatchUpdate", "derive_update"]
