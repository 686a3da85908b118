"""
Waitlist API for one room.

Player routes (join, cancel, status) identify the player from the bearer token.
Everything else is operator-only: status changes, seating, queue reordering, expiry and analytics.
"""
import logging
from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import (
    get_clock,
    get_current_player,
    get_notifier,
    get_position_manager,
    get_seating_service,
    get_status_manager,
    get_sweeper,
    require_operator,
)
from app.config import settings
from app.core.errors import STATUS_BAD_REQUEST, NotFound
from app.core.status import CancelledBy, WaitlistStatus, status_config
from app.db.session import get_db
from app.models.game import Game
from app.models.player import Player
from app.models.waitlist_entry import WaitlistEntry
from app.services.table_seating_service import TableSeatingService
from app.services.waitlist import (
    ExpirySweeper,
    SeatResult,
    WaitlistNotifier,
    WaitlistPositionManager,
    WaitlistStatusManager,
    estimated_wait_minutes,
)
from app.services.waitlist_service import (
    cancel_player_entry,
    get_player_status,
    get_waitlist_analytics,
    join_waitlist,
    serialize_entry,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class JoinWaitlistBody(BaseModel):
    game_ids: list[str] = Field(..., min_length=1, description="Games to queue for (one entry per game)")
    notes: str | None = Field(None, max_length=500)
    keep_other_entries: bool = True


class CancelEntryBody(BaseModel):
    entry_id: str = Field(..., min_length=1)


class UpdateStatusBody(BaseModel):
    status: WaitlistStatus
    notes: str | None = Field(None, max_length=500)
    cancelled_by: CancelledBy | None = None


class SeatPlayerBody(BaseModel):
    table_id: str = Field(..., min_length=1)
    seat_number: int = Field(..., ge=1)
    notes: str | None = Field(None, max_length=500)
    cancel_other_entries: bool = True


class AutoAssignBody(BaseModel):
    game_id: str = Field(..., min_length=1)


class MoveEntryBody(BaseModel):
    position: int | None = Field(None, ge=1, description="Target 1-based position")
    before_entry_id: str | None = None
    after_entry_id: str | None = None


def _room_entry(db: Session, room_id: str, entry_id: str) -> WaitlistEntry:
    entry = db.query(WaitlistEntry).filter(WaitlistEntry.id == entry_id, WaitlistEntry.room_id == room_id).first()
    if entry is None:
        raise NotFound("Waitlist entry not found")
    return entry


def _seat_response(result: SeatResult) -> dict[str, Any]:
    body: dict[str, Any] = {
        "success": True,
        "entry_id": result.entry_id,
        "player_session_id": result.player_session.id,
        "seat_number": result.player_session.seat_number,
        "cancelled_entry_ids": result.cancelled_entry_ids,
    }
    if result.partial_failure is not None:
        # Seat is taken; staff must clean up the player's other entries by hand
        body["warning"] = result.partial_failure.message
    return body


# --- Player ---


@router.post("/join")
def join(
    room_id: str,
    body: JoinWaitlistBody,
    db: Session = Depends(get_db),
    player: Player = Depends(get_current_player),
    notifier: WaitlistNotifier = Depends(get_notifier),
    clock=Depends(get_clock),
) -> dict[str, Any]:
    entries = join_waitlist(
        db,
        room_id,
        player.id,
        body.game_ids,
        notes=body.notes,
        keep_other_entries=body.keep_other_entries,
        notifier=notifier,
        clock=clock,
    )
    games = {g.id: g for g in db.query(Game).filter(Game.id.in_([e.game_id for e in entries])).all()}
    return {
        "success": True,
        "entries": [serialize_entry(e, games.get(e.game_id)) for e in entries],
        "message": f"Successfully joined waitlist for {len(entries)} game(s)",
    }


@router.post("/cancel")
def cancel(
    room_id: str,
    body: CancelEntryBody,
    db: Session = Depends(get_db),
    player: Player = Depends(get_current_player),
    notifier: WaitlistNotifier = Depends(get_notifier),
    clock=Depends(get_clock),
) -> dict[str, Any]:
    entry = cancel_player_entry(db, room_id, player.id, body.entry_id, notifier=notifier, clock=clock)
    return {"success": True, "entry": serialize_entry(entry), "message": "Waitlist entry cancelled"}


@router.get("/status")
def player_status(
    room_id: str,
    db: Session = Depends(get_db),
    player: Player = Depends(get_current_player),
    clock=Depends(get_clock),
) -> dict[str, Any]:
    return {"success": True, "entries": get_player_status(db, room_id, player.id, clock=clock)}


# --- Operator: room-level ---


@router.get("/analytics")
def analytics(
    room_id: str,
    time_range: Literal["24h", "7d", "30d"] = Query("7d"),
    game_id: str | None = Query(None),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    db: Session = Depends(get_db),
    _operator=Depends(require_operator),
    clock=Depends(get_clock),
) -> dict[str, Any]:
    result = get_waitlist_analytics(
        db, room_id, time_range=time_range, game_id=game_id, start=start_date, end=end_date, clock=clock
    )
    return {"success": True, **result}


@router.post("/auto-assign")
def auto_assign(
    room_id: str,
    body: AutoAssignBody,
    _operator=Depends(require_operator),
    seating: TableSeatingService = Depends(get_seating_service),
) -> dict[str, Any]:
    result, alias = seating.auto_assign_next_player(room_id, body.game_id)
    response = _seat_response(result)
    response["assigned_player"] = alias
    response["message"] = f"Successfully assigned {alias} to a table"
    return response


@router.post("/expiry/process")
def process_expiry(
    room_id: str,
    _operator=Depends(require_operator),
    sweeper: ExpirySweeper = Depends(get_sweeper),
    manager: WaitlistStatusManager = Depends(get_status_manager),
) -> dict[str, Any]:
    """Run one expiry sweep for the room now (the scheduler does this every minute)."""
    expired_ids = sweeper.check_and_expire_entries(room_id)
    warnings_sent = manager.process_expiry_warnings(room_id)
    return {
        "success": True,
        "expired_entry_ids": expired_ids,
        "expired_count": len(expired_ids),
        "warnings_sent": warnings_sent,
    }


@router.get("/expired")
def expired_entries(
    room_id: str,
    within_minutes: int = Query(settings.expired_history_minutes, ge=1, le=24 * 60),
    _operator=Depends(require_operator),
    sweeper: ExpirySweeper = Depends(get_sweeper),
) -> dict[str, Any]:
    entries = sweeper.get_expired_entries(room_id, within_minutes)
    return {"success": True, "entries": [serialize_entry(e) for e in entries]}


@router.get("/games/{game_id}/queue")
def game_queue(
    room_id: str,
    game_id: str,
    db: Session = Depends(get_db),
    _operator=Depends(require_operator),
    positions: WaitlistPositionManager = Depends(get_position_manager),
) -> dict[str, Any]:
    queue = [e for e in positions.get_queue(game_id) if e.room_id == room_id]
    players = {p.id: p for p in db.query(Player).filter(Player.id.in_([e.player_id for e in queue])).all()}
    rows = []
    for rank, entry in enumerate(queue, start=1):
        row = serialize_entry(entry, player=players.get(entry.player_id))
        row["queue_position"] = rank
        row["estimated_wait_minutes"] = estimated_wait_minutes(rank - 1)
        rows.append(row)
    return {"success": True, "game_id": game_id, "entries": rows}


# --- Operator: single entry ---


@router.get("/{entry_id}/status")
def entry_status(
    room_id: str,
    entry_id: str,
    db: Session = Depends(get_db),
    _operator=Depends(require_operator),
    manager: WaitlistStatusManager = Depends(get_status_manager),
) -> dict[str, Any]:
    entry = _room_entry(db, room_id, entry_id)
    config = status_config(entry.status)
    now = manager.clock()
    deadline = manager.policy.deadline(entry)
    return {
        "success": True,
        "entry": serialize_entry(entry),
        "config": {
            "label": config.label,
            "description": config.description,
            "show_countdown": config.show_countdown,
            "countdown_minutes": config.countdown_minutes,
            "actions": list(config.actions),
        },
        "deadline": deadline.isoformat() if deadline else None,
        "minutes_remaining": manager.policy.remaining_minutes(entry, now) if deadline else None,
        "is_expired": manager.policy.is_expired(entry, now),
    }


@router.post("/{entry_id}/status")
def update_entry_status(
    room_id: str,
    entry_id: str,
    body: UpdateStatusBody,
    db: Session = Depends(get_db),
    _operator=Depends(require_operator),
    manager: WaitlistStatusManager = Depends(get_status_manager),
) -> dict[str, Any]:
    _room_entry(db, room_id, entry_id)
    entry = manager.update_status(
        entry_id, body.status, CancelledBy.STAFF, notes=body.notes, cancelled_by=body.cancelled_by
    )
    return {
        "success": True,
        "entry": serialize_entry(entry),
        "message": f"Status updated to {body.status.value}",
    }


@router.post("/{entry_id}/seat")
def seat_entry(
    room_id: str,
    entry_id: str,
    body: SeatPlayerBody,
    db: Session = Depends(get_db),
    _operator=Depends(require_operator),
    seating: TableSeatingService = Depends(get_seating_service),
) -> dict[str, Any]:
    _room_entry(db, room_id, entry_id)
    seating.get_table(body.table_id, room_id)
    result = seating.assign_player_to_table(
        entry_id,
        body.table_id,
        body.seat_number,
        notes=body.notes,
        cancel_other_entries=body.cancel_other_entries,
    )
    return _seat_response(result)


@router.get("/{entry_id}/position")
def entry_position(
    room_id: str,
    entry_id: str,
    db: Session = Depends(get_db),
    _operator=Depends(require_operator),
    positions: WaitlistPositionManager = Depends(get_position_manager),
) -> dict[str, Any]:
    _room_entry(db, room_id, entry_id)
    rank = positions.get_position(entry_id)
    in_queue = rank is not None
    return {
        "success": True,
        "entry_id": entry_id,
        "position": rank,
        "can_move_up": positions.can_move_up(entry_id) if in_queue else False,
        "can_move_down": positions.can_move_down(entry_id) if in_queue else False,
        "estimated_wait_minutes": estimated_wait_minutes(rank - 1) if in_queue else None,
    }


def _move_response(positions: WaitlistPositionManager, entry_id: str, moved: bool) -> dict[str, Any]:
    return {"success": True, "moved": moved, "entry_id": entry_id, "position": positions.get_position(entry_id)}


@router.post("/{entry_id}/move-up")
def move_up(
    room_id: str,
    entry_id: str,
    db: Session = Depends(get_db),
    _operator=Depends(require_operator),
    positions: WaitlistPositionManager = Depends(get_position_manager),
) -> dict[str, Any]:
    _room_entry(db, room_id, entry_id)
    return _move_response(positions, entry_id, positions.move_up(entry_id))


@router.post("/{entry_id}/move-down")
def move_down(
    room_id: str,
    entry_id: str,
    db: Session = Depends(get_db),
    _operator=Depends(require_operator),
    positions: WaitlistPositionManager = Depends(get_position_manager),
) -> dict[str, Any]:
    _room_entry(db, room_id, entry_id)
    return _move_response(positions, entry_id, positions.move_down(entry_id))


@router.post("/{entry_id}/move-to-top")
def move_to_top(
    room_id: str,
    entry_id: str,
    db: Session = Depends(get_db),
    _operator=Depends(require_operator),
    positions: WaitlistPositionManager = Depends(get_position_manager),
) -> dict[str, Any]:
    _room_entry(db, room_id, entry_id)
    return _move_response(positions, entry_id, positions.move_to_top(entry_id))


@router.post("/{entry_id}/move-to-bottom")
def move_to_bottom(
    room_id: str,
    entry_id: str,
    db: Session = Depends(get_db),
    _operator=Depends(require_operator),
    positions: WaitlistPositionManager = Depends(get_position_manager),
) -> dict[str, Any]:
    _room_entry(db, room_id, entry_id)
    return _move_response(positions, entry_id, positions.move_to_bottom(entry_id))


@router.post("/{entry_id}/move")
def move_entry(
    room_id: str,
    entry_id: str,
    body: MoveEntryBody,
    db: Session = Depends(get_db),
    _operator=Depends(require_operator),
    positions: WaitlistPositionManager = Depends(get_position_manager),
) -> dict[str, Any]:
    """Move to an absolute position, or before/after another entry. Exactly one target is required."""
    _room_entry(db, room_id, entry_id)
    targets = [t for t in (body.position, body.before_entry_id, body.after_entry_id) if t is not None]
    if len(targets) != 1:
        raise HTTPException(status_code=STATUS_BAD_REQUEST, detail="Provide exactly one of position, before_entry_id, after_entry_id")
    if body.position is not None:
        moved = positions.move_to_position(entry_id, body.position)
    elif body.before_entry_id is not None:
        moved = positions.move_before(entry_id, body.before_entry_id)
    else:
        moved = positions.move_after(entry_id, body.after_entry_id)
    return _move_response(positions, entry_id, moved)
