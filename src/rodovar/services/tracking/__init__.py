"""Live tracking: sessions, viewer polling, connectivity."""

from .connectivity import ConnectivityMonitor
from .merge import TRACKER_OWNED_FIELDS, apply_position, merge_snapshots
from .poller import ViewerPoller
from .position import NullWakeLock, PositionSource, RelayedPositionSource, WakeLock
from .session import SessionManager, SessionState, TickOutcome, TrackingSession

__all__ = [
    "ConnectivityMonitor",
    "TRACKER_OWNED_FIELDS",
    "apply_position",
    "merge_snapshots",
    "ViewerPoller",
    "NullWakeLock",
    "PositionSource",
    "RelayedPositionSource",
    "WakeLock",
    "SessionManager",
    "SessionState",
    "TickOutcome",
    "TrackingSession",
]
