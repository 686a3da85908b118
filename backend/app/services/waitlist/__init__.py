from app.services.waitlist.expiry import ExpiryPolicy, utcnow
from app.services.waitlist.notifications import (
    NullNotifier,
    PlayerNotificationService,
    WaitlistNotifier,
    notify_safely,
)
from app.services.waitlist.positions import WaitlistPositionManager, estimated_wait_minutes
from app.services.waitlist.status_manager import SeatResult, WaitlistStatusManager
from app.services.waitlist.store import SqlWaitlistStore, WaitlistStore
from app.services.waitlist.sweeper import ExpirySweeper

__all__ = [
    "ExpiryPolicy",
    "ExpirySweeper",
    "NullNotifier",
    "PlayerNotificationService",
    "SeatResult",
    "SqlWaitlistStore",
    "WaitlistNotifier",
    "WaitlistPositionManager",
    "WaitlistStatusManager",
    "WaitlistStore",
    "estimated_wait_minutes",
    "notify_safely",
    "utcnow",
]
