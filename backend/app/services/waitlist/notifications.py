"""
Notification dispatcher for waitlist events.

Delivery is best-effort: callers go through notify_safely(), which logs and swallows any
failure so a notification problem never fails a status change, sweep or reorder.
"""
import logging
from typing import Callable, Protocol

from sqlalchemy.orm import Session, sessionmaker

from app.config import settings
from app.core.status import WaitlistStatus
from app.models.game import Game
from app.models.player_notification import PlayerNotification
from app.models.push_token import PushToken
from app.models.waitlist_entry import WaitlistEntry
from app.services.push import send_push_to_devices

logger = logging.getLogger(__name__)

PUSH_PRIORITIES = ("urgent", "high")


class WaitlistNotifier(Protocol):
    def notify_status_change(self, entry_id: str, new_status: str, old_status: str | None) -> None:
        ...

    def notify_expiry_warning(self, entry_id: str, minutes_remaining: int) -> None:
        ...

    def notify_position_change(self, entry_id: str, new_position: int, old_position: int | None) -> None:
        ...


class NullNotifier:
    """Default notifier: drops every event."""

    def notify_status_change(self, entry_id, new_status, old_status) -> None:
        return None

    def notify_expiry_warning(self, entry_id, minutes_remaining) -> None:
        return None

    def notify_position_change(self, entry_id, new_position, old_position) -> None:
        return None


def notify_safely(fn: Callable[..., None], *args) -> None:
    try:
        fn(*args)
    except Exception as e:
        logger.warning("Waitlist notification %s%r failed: %s", getattr(fn, "__name__", fn), args, e, exc_info=True)


def _status_message(status: WaitlistStatus, game_name: str) -> tuple[str, str] | None:
    """(message, priority) for a new status; None means no player-facing message."""
    if status == WaitlistStatus.WAITING:
        return f"You've been checked in for {game_name}. You're now on the active waitlist.", "medium"
    if status == WaitlistStatus.NOTIFIED:
        minutes = settings.waitlist_notified_timeout_minutes
        return f"A seat is available for {game_name}! You have {minutes} minutes to respond.", "urgent"
    if status == WaitlistStatus.SEATED:
        return f"You've been seated at {game_name}. Enjoy your game!", "high"
    if status == WaitlistStatus.CANCELLED:
        return f"Your waitlist entry for {game_name} has been cancelled.", "medium"
    if status == WaitlistStatus.EXPIRED:
        return f"Your waitlist entry for {game_name} has expired due to timeout.", "medium"
    return None


class PlayerNotificationService:
    """
    Stores a PlayerNotification row per event and pushes urgent/high ones to the player's devices.
    Uses its own session so a failure here cannot disturb the caller's transaction.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        push_sender: Callable[..., int] = send_push_to_devices,
    ):
        self.session_factory = session_factory
        self.push_sender = push_sender

    def notify_status_change(self, entry_id: str, new_status: str, old_status: str | None) -> None:
        db = self.session_factory()
        try:
            entry, game_name = self._load_entry(db, entry_id)
            if entry is None:
                return
            built = _status_message(WaitlistStatus(new_status), game_name)
            if built is None:
                return
            message, priority = built
            self._deliver(
                db,
                entry,
                type_="status_change",
                title="Waitlist Update",
                message=message,
                priority=priority,
                payload={
                    "entry_id": entry.id,
                    "game_name": game_name,
                    "status": WaitlistStatus(new_status).value,
                    "previous_status": getattr(old_status, "value", old_status),
                },
            )
        finally:
            db.close()

    def notify_expiry_warning(self, entry_id: str, minutes_remaining: int) -> None:
        db = self.session_factory()
        try:
            entry, game_name = self._load_entry(db, entry_id)
            if entry is None:
                return
            self._deliver(
                db,
                entry,
                type_="expiry_warning",
                title="Expiry Warning",
                message=(
                    f"Your waitlist entry for {game_name} will expire in {minutes_remaining} minutes. "
                    "Please check in soon."
                ),
                priority="high",
                payload={"entry_id": entry.id, "game_name": game_name, "minutes_remaining": minutes_remaining},
            )
        finally:
            db.close()

    def notify_position_change(self, entry_id: str, new_position: int, old_position: int | None) -> None:
        db = self.session_factory()
        try:
            entry, game_name = self._load_entry(db, entry_id)
            if entry is None:
                return
            direction = "up" if old_position is None or new_position < old_position else "down"
            self._deliver(
                db,
                entry,
                type_="position_change",
                title="Position Updated",
                message=f"You moved {direction} to position {new_position} for {game_name}.",
                priority="low",
                payload={
                    "entry_id": entry.id,
                    "game_name": game_name,
                    "position": new_position,
                    "previous_position": old_position,
                },
            )
        finally:
            db.close()

    def _load_entry(self, db: Session, entry_id: str) -> tuple[WaitlistEntry | None, str]:
        entry = db.query(WaitlistEntry).filter(WaitlistEntry.id == entry_id).first()
        if entry is None or not entry.player_id:
            logger.warning("Notification skipped: entry %s missing or has no player", entry_id)
            return None, ""
        game = db.query(Game).filter(Game.id == entry.game_id).first() if entry.game_id else None
        return entry, (game.name if game else "a game")

    def _deliver(
        self,
        db: Session,
        entry: WaitlistEntry,
        *,
        type_: str,
        title: str,
        message: str,
        priority: str,
        payload: dict,
    ) -> None:
        db.add(
            PlayerNotification(
                player_id=entry.player_id,
                type=type_,
                priority=priority,
                title=title,
                message=message,
                payload=payload,
            )
        )
        db.commit()
        if priority in PUSH_PRIORITIES:
            tokens = [r.device_token for r in db.query(PushToken).filter(PushToken.player_id == entry.player_id).all()]
            if tokens:
                sent = self.push_sender(
                    tokens, title, message, data={"type": type_, **payload}, urgent=priority == "urgent"
                )
                logger.info("Pushed %s to %s/%s devices for player %s", type_, sent, len(tokens), entry.player_id)
