"""
Expiry sweeper: moves calledin/notified entries past their deadline to expired.

One bulk update per room per run, guarded by status IN (calledin, notified) so an entry that
was checked in or seated between the read and the write is left alone.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.core.errors import PersistenceFailure
from app.core.status import EXPIRING_STATUSES, CancelledBy, WaitlistStatus
from app.models.waitlist_entry import WaitlistEntry
from app.services.waitlist.expiry import ExpiryPolicy, utcnow
from app.services.waitlist.notifications import NullNotifier, WaitlistNotifier, notify_safely
from app.services.waitlist.store import WaitlistStore

logger = logging.getLogger(__name__)


class ExpirySweeper:
    def __init__(
        self,
        store: WaitlistStore,
        notifier: WaitlistNotifier | None = None,
        policy: ExpiryPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.notifier = notifier or NullNotifier()
        self.policy = policy or ExpiryPolicy.from_settings()
        self.clock = clock

    def check_and_expire_entries(self, room_id: str) -> list[str]:
        """Expire overdue entries of one room. Returns the expired ids; [] on any failure."""
        now = self.clock()
        try:
            candidates = self.store.list_entries(room_id=room_id, statuses=EXPIRING_STATUSES)
            overdue = {e.id: e.status for e in candidates if self.policy.is_expired(e, now)}
            if not overdue:
                return []
            values = {
                "status": WaitlistStatus.EXPIRED,
                "cancelled_at": now,
                "cancelled_by": CancelledBy.SYSTEM,
                "updated_at": now,
            }
            changed = set(self.store.bulk_update_entries(list(overdue), values, only_statuses=EXPIRING_STATUSES))
            expired_ids = [i for i in overdue if i in changed]
            self.store.commit()
        except (PersistenceFailure, SQLAlchemyError) as e:
            logger.warning("Expiry sweep for room %s abandoned: %s", room_id, e)
            self.store.rollback()
            return []

        skipped = len(overdue) - len(expired_ids)
        if skipped:
            logger.info("Skipped %s entries in room %s that changed status before expiry", skipped, room_id)
        logger.info("Expired %s waitlist entries in room %s", len(expired_ids), room_id)
        for entry_id in expired_ids:
            notify_safely(self.notifier.notify_status_change, entry_id, WaitlistStatus.EXPIRED, overdue[entry_id])
        return expired_ids

    def get_expired_entries(self, room_id: str, within_minutes: int | None = None) -> list[WaitlistEntry]:
        minutes = within_minutes if within_minutes is not None else settings.expired_history_minutes
        since = self.clock() - timedelta(minutes=minutes)
        return self.store.list_recently_closed(room_id, since)
