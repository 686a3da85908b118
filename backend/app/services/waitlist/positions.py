"""
Queue ordering for waiting entries of one game.

Positions are plain integers. Every reorder reads the full queue, moves the entry within the
list and renumbers 1..n, so positions stay unique and gap-free after each write.
"""
import logging
from datetime import datetime, timezone

from app.config import settings
from app.core.errors import NotFound, NotInQueue
from app.core.status import WaitlistStatus
from app.models.waitlist_entry import WaitlistEntry
from app.services.waitlist.expiry import as_utc, utcnow
from app.services.waitlist.notifications import NullNotifier, WaitlistNotifier, notify_safely
from app.services.waitlist.store import WaitlistStore

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def queue_sort_key(entry: WaitlistEntry) -> tuple:
    """(position asc, nulls last) then created_at, then id."""
    return (
        entry.position is None,
        entry.position if entry.position is not None else 0,
        as_utc(entry.created_at) or _EPOCH,
        entry.id or "",
    )


def estimated_wait_minutes(entries_ahead: int, minutes_per_slot: int | None = None) -> int:
    per_slot = minutes_per_slot if minutes_per_slot is not None else settings.waitlist_minutes_per_slot
    return max(0, entries_ahead) * per_slot


class WaitlistPositionManager:
    def __init__(self, store: WaitlistStore, notifier: WaitlistNotifier | None = None, clock=utcnow):
        self.store = store
        self.notifier = notifier or NullNotifier()
        self.clock = clock

    def get_queue(self, game_id: str) -> list[WaitlistEntry]:
        entries = self.store.list_entries(game_id=game_id, statuses=[WaitlistStatus.WAITING])
        return sorted(entries, key=queue_sort_key)

    def get_position(self, entry_id: str) -> int | None:
        """1-based rank in the game queue; None when the entry is not waiting."""
        entry = self._get(entry_id)
        if entry.status != WaitlistStatus.WAITING:
            return None
        ids = [e.id for e in self.get_queue(entry.game_id)]
        return ids.index(entry.id) + 1

    def next_position(self, game_id: str) -> int:
        positions = [e.position for e in self.get_queue(game_id) if e.position is not None]
        return max(positions, default=0) + 1

    def can_move_up(self, entry_id: str) -> bool:
        queue, index = self._locate(entry_id)
        return index > 0

    def can_move_down(self, entry_id: str) -> bool:
        queue, index = self._locate(entry_id)
        return index < len(queue) - 1

    def move_up(self, entry_id: str) -> bool:
        queue, index = self._locate(entry_id)
        return self._move(queue, index, index - 1)

    def move_down(self, entry_id: str) -> bool:
        queue, index = self._locate(entry_id)
        return self._move(queue, index, index + 1)

    def move_to_top(self, entry_id: str) -> bool:
        queue, index = self._locate(entry_id)
        return self._move(queue, index, 0)

    def move_to_bottom(self, entry_id: str) -> bool:
        queue, index = self._locate(entry_id)
        return self._move(queue, index, len(queue) - 1)

    def move_to_position(self, entry_id: str, position: int) -> bool:
        """Move to a 1-based position; out-of-range values are clamped to the queue."""
        queue, index = self._locate(entry_id)
        target = min(max(position, 1), len(queue)) - 1
        return self._move(queue, index, target)

    def move_before(self, entry_id: str, target_id: str) -> bool:
        queue, index = self._locate(entry_id)
        target_index = self._index_of(queue, target_id)
        if target_index > index:
            target_index -= 1
        return self._move(queue, index, target_index)

    def move_after(self, entry_id: str, target_id: str) -> bool:
        queue, index = self._locate(entry_id)
        target_index = self._index_of(queue, target_id)
        if target_index < index:
            target_index += 1
        return self._move(queue, index, target_index)

    def rebalance(self, game_id: str) -> int:
        """Renumber the queue 1..n in its current order. Returns the number of rows changed."""
        queue = self.get_queue(game_id)
        changed = self._renumber(queue)
        if changed:
            self.store.commit()
            self._notify(changed)
        return len(changed)

    def _get(self, entry_id: str) -> WaitlistEntry:
        entry = self.store.get_entry(entry_id)
        if entry is None:
            raise NotFound("Entry not found")
        return entry

    def _locate(self, entry_id: str) -> tuple[list[WaitlistEntry], int]:
        entry = self._get(entry_id)
        if entry.status != WaitlistStatus.WAITING:
            raise NotInQueue("Entry is not in the waiting queue")
        queue = self.get_queue(entry.game_id)
        return queue, self._index_of(queue, entry_id)

    @staticmethod
    def _index_of(queue: list[WaitlistEntry], entry_id: str) -> int:
        for i, e in enumerate(queue):
            if e.id == entry_id:
                return i
        raise NotInQueue("Target entry is not in the same waiting queue")

    def _move(self, queue: list[WaitlistEntry], index: int, target: int) -> bool:
        if target < 0 or target >= len(queue) or target == index:
            return False
        entry = queue.pop(index)
        queue.insert(target, entry)
        changed = self._renumber(queue)
        if changed:
            self.store.commit()
            logger.info("Moved waitlist entry %s to position %s", entry.id, target + 1)
            self._notify(changed)
        return True

    def _renumber(self, queue: list[WaitlistEntry]) -> list[tuple[str, int, int | None]]:
        """Write positions 1..n; only rows whose position differs are updated."""
        now = self.clock()
        changed = []
        for rank, e in enumerate(queue, start=1):
            if e.position != rank:
                changed.append((e.id, rank, e.position))
                self.store.update_entry(e.id, {"position": rank, "updated_at": now})
        return changed

    def _notify(self, changed: list[tuple[str, int, int | None]]) -> None:
        for entry_id, new, old in changed:
            notify_safely(self.notifier.notify_position_change, entry_id, new, old)
