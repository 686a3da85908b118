"""
Expiry policy: per-status timeout and the timestamp it is measured from.

calledin: created_at + 90 min (time to check in). notified: notified_at + 5 min (time to
respond). Every other status is open-ended. Deadlines are evaluated lazily by the sweeper
and by expiry-aware reads; there is no live timer per entry.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from app.config import settings
from app.core.status import WaitlistStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite (and some drivers) hand back naive datetimes; they are stored as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class ExpiryPolicy:
    calledin_timeout_minutes: int = 90
    notified_timeout_minutes: int = 5

    @classmethod
    def from_settings(cls) -> "ExpiryPolicy":
        return cls(
            calledin_timeout_minutes=settings.waitlist_calledin_timeout_minutes,
            notified_timeout_minutes=settings.waitlist_notified_timeout_minutes,
        )

    def timeout(self, status) -> timedelta | None:
        if status == WaitlistStatus.CALLEDIN:
            return timedelta(minutes=self.calledin_timeout_minutes)
        if status == WaitlistStatus.NOTIFIED:
            return timedelta(minutes=self.notified_timeout_minutes)
        return None

    @staticmethod
    def anchor(entry) -> datetime | None:
        if entry.status == WaitlistStatus.CALLEDIN:
            return as_utc(entry.created_at)
        if entry.status == WaitlistStatus.NOTIFIED:
            return as_utc(entry.notified_at)
        return None

    def deadline(self, entry) -> datetime | None:
        """Absolute deadline, or None. A missing anchor means no deadline, never 'expired now'."""
        timeout = self.timeout(entry.status)
        anchor = self.anchor(entry)
        if timeout is None or anchor is None:
            return None
        return anchor + timeout

    def is_expired(self, entry, now: datetime) -> bool:
        deadline = self.deadline(entry)
        return deadline is not None and as_utc(now) >= deadline

    def remaining_minutes(self, entry, now: datetime) -> int:
        """Whole minutes left, rounded up; 0 when past the deadline or when there is none."""
        deadline = self.deadline(entry)
        if deadline is None:
            return 0
        remaining = (deadline - as_utc(now)).total_seconds()
        return max(0, math.ceil(remaining / 60))

    def needs_warning(self, entry, now: datetime, lookahead_minutes: int) -> bool:
        deadline = self.deadline(entry)
        if deadline is None:
            return False
        now = as_utc(now)
        return now < deadline <= now + timedelta(minutes=lookahead_minutes)
