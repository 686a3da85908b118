"""
Status manager: the only writer of waitlist entry status besides the expiry sweeper.

update_status validates against the transition table, stamps the timestamps that belong to
the target status, writes the row in one update and then emits a best-effort status-change
event. seat_player is the compound seat-assignment operation.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from app.config import settings
from app.core.errors import InvalidTransition, NoActiveSession, NotFound, PartialFailure, PersistenceFailure
from app.core.status import (
    ACTIVE_STATUSES,
    EXPIRING_STATUSES,
    CancelledBy,
    WaitlistStatus,
    is_valid_transition,
)
from app.models.player_session import PlayerSession
from app.models.waitlist_entry import WaitlistEntry
from app.services.waitlist.expiry import ExpiryPolicy, utcnow
from app.services.waitlist.notifications import NullNotifier, WaitlistNotifier, notify_safely
from app.services.waitlist.store import WaitlistStore

logger = logging.getLogger(__name__)


@dataclass
class SeatResult:
    entry_id: str
    player_session: PlayerSession
    cancelled_entry_ids: list[str] = field(default_factory=list)
    # Set when the seat was taken but sibling entries could not be cancelled
    partial_failure: PartialFailure | None = None


class WaitlistStatusManager:
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

    def get_entry(self, entry_id: str) -> WaitlistEntry | None:
        return self.store.get_entry(entry_id)

    def update_status(
        self,
        entry_id: str,
        new_status: WaitlistStatus | str,
        actor: CancelledBy | str = CancelledBy.STAFF,
        *,
        notes: str | None = None,
        cancelled_by: CancelledBy | str | None = None,
    ) -> WaitlistEntry:
        """Validate, stamp and persist one transition. Raises NotFound / InvalidTransition / PersistenceFailure."""
        new_status = WaitlistStatus(new_status)
        entry, old_status = self._stage_transition(
            entry_id, new_status, actor, notes=notes, cancelled_by=cancelled_by
        )
        self.store.commit()
        logger.info("Waitlist entry %s: %s -> %s", entry_id, _value(old_status), new_status.value)
        if old_status != new_status:
            notify_safely(self.notifier.notify_status_change, entry_id, new_status, old_status)
        return entry

    def check_in_player(self, entry_id: str, notes: str | None = None) -> WaitlistEntry:
        return self.update_status(entry_id, WaitlistStatus.WAITING, CancelledBy.STAFF, notes=notes)

    def notify_player(self, entry_id: str, notes: str | None = None) -> WaitlistEntry:
        return self.update_status(entry_id, WaitlistStatus.NOTIFIED, CancelledBy.STAFF, notes=notes)

    def cancel_entry(
        self, entry_id: str, cancelled_by: CancelledBy | str = CancelledBy.STAFF, notes: str | None = None
    ) -> WaitlistEntry:
        return self.update_status(
            entry_id, WaitlistStatus.CANCELLED, cancelled_by, notes=notes, cancelled_by=cancelled_by
        )

    def expire_entry(self, entry_id: str, notes: str | None = None) -> WaitlistEntry:
        return self.update_status(
            entry_id,
            WaitlistStatus.EXPIRED,
            CancelledBy.SYSTEM,
            notes=notes or "Entry expired due to timeout",
            cancelled_by=CancelledBy.SYSTEM,
        )

    def seat_player(
        self,
        entry_id: str,
        table_id: str,
        seat_number: int,
        notes: str | None = None,
        cancel_other_entries: bool = True,
    ) -> SeatResult:
        """
        Move the entry to seated and create the seat-occupancy record in one commit.
        Seat availability is the caller's responsibility (TableSeatingService checks it).
        """
        entry = self.store.get_entry(entry_id)
        if entry is None or not entry.player_id:
            raise NotFound("Entry not found")
        player_id = entry.player_id

        _, old_status = self._stage_transition(entry_id, WaitlistStatus.SEATED, CancelledBy.STAFF, notes=notes)
        table_session = self.store.get_active_table_session(table_id)
        if table_session is None:
            self.store.rollback()
            raise NoActiveSession(table_id)
        player_session = self.store.add_player_session(
            table_session_id=table_session.id,
            player_id=player_id,
            seat_number=seat_number,
            start_time=self.clock(),
        )
        try:
            self.store.commit()
        except PersistenceFailure as e:
            raise PersistenceFailure("Failed to create player session") from e
        logger.info("Seated player %s at table %s seat %s (entry %s)", player_id, table_id, seat_number, entry_id)
        notify_safely(self.notifier.notify_status_change, entry_id, WaitlistStatus.SEATED, old_status)

        result = SeatResult(entry_id=entry_id, player_session=player_session)
        if cancel_other_entries:
            try:
                result.cancelled_entry_ids = self._cancel_other_entries(player_id, entry_id)
            except PersistenceFailure as e:
                logger.warning("Seated entry %s but could not cancel other entries of player %s: %s", entry_id, player_id, e)
                result.partial_failure = PartialFailure(
                    "Player is seated but other waitlist entries could not be cancelled"
                )
        return result

    def entries_needing_expiry_warning(
        self, room_id: str, lookahead_minutes: int | None = None, now: datetime | None = None
    ) -> list[WaitlistEntry]:
        """Read-only: calledin/notified entries of the room whose deadline falls inside the lookahead."""
        lookahead = lookahead_minutes if lookahead_minutes is not None else settings.waitlist_warning_lookahead_minutes
        now = now or self.clock()
        entries = self.store.list_entries(room_id=room_id, statuses=EXPIRING_STATUSES)
        return [e for e in entries if self.policy.needs_warning(e, now, lookahead)]

    def process_expiry_warnings(self, room_id: str, lookahead_minutes: int | None = None) -> int:
        """Send (entry_id, minutes_remaining) warnings. Returns how many were sent."""
        lookahead = lookahead_minutes if lookahead_minutes is not None else settings.waitlist_warning_lookahead_minutes
        now = self.clock()
        sent = 0
        for entry in self.entries_needing_expiry_warning(room_id, lookahead, now):
            remaining = self.policy.remaining_minutes(entry, now)
            if 0 < remaining <= lookahead:
                notify_safely(self.notifier.notify_expiry_warning, entry.id, remaining)
                sent += 1
        return sent

    def _stage_transition(
        self,
        entry_id: str,
        new_status: WaitlistStatus,
        actor: CancelledBy | str,
        *,
        notes: str | None = None,
        cancelled_by: CancelledBy | str | None = None,
    ) -> tuple[WaitlistEntry, WaitlistStatus | None]:
        entry = self.store.get_entry(entry_id)
        if entry is None:
            raise NotFound("Entry not found")
        old_status = entry.status
        if not is_valid_transition(old_status, new_status):
            raise InvalidTransition(old_status, new_status)

        now = self.clock()
        values: dict = {"status": new_status, "updated_at": now}
        if new_status == WaitlistStatus.WAITING:
            values["checked_in_at"] = now
            values["position"] = self._tail_position(entry.game_id, exclude_id=entry.id)
        elif new_status == WaitlistStatus.NOTIFIED:
            values["notified_at"] = now
        elif new_status == WaitlistStatus.CANCELLED:
            values["cancelled_at"] = now
            values["cancelled_by"] = CancelledBy(cancelled_by or actor)
        elif new_status == WaitlistStatus.EXPIRED:
            values["cancelled_at"] = now
            values["cancelled_by"] = CancelledBy.SYSTEM
        if notes is not None:
            values["notes"] = notes

        updated = self.store.update_entry(entry_id, values)
        return updated, old_status

    def _tail_position(self, game_id: str | None, exclude_id: str) -> int:
        if game_id is None:
            return 1
        queue = self.store.list_entries(game_id=game_id, statuses=[WaitlistStatus.WAITING], exclude_ids=[exclude_id])
        positions = [e.position for e in queue if e.position is not None]
        return max(positions, default=0) + 1

    def _cancel_other_entries(self, player_id: str, keep_entry_id: str) -> list[str]:
        others = self.store.list_entries(player_id=player_id, statuses=ACTIVE_STATUSES, exclude_ids=[keep_entry_id])
        if not others:
            return []
        previous = {e.id: e.status for e in others}
        now = self.clock()
        values = {
            "status": WaitlistStatus.CANCELLED,
            "cancelled_at": now,
            "cancelled_by": CancelledBy.SYSTEM,
            "updated_at": now,
        }
        changed = set(self.store.bulk_update_entries(list(previous), values, only_statuses=ACTIVE_STATUSES))
        self.store.commit()
        cancelled_ids = [i for i in previous if i in changed]
        for other_id in cancelled_ids:
            notify_safely(self.notifier.notify_status_change, other_id, WaitlistStatus.CANCELLED, previous[other_id])
        logger.info("Cancelled %s other entries of player %s after seating", len(cancelled_ids), player_id)
        return cancelled_ids


def _value(status) -> str | None:
    return getattr(status, "value", status)
