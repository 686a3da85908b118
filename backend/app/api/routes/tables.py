"""Table sessions for a room (operator-only): open/close tables, seat lookups, end a player's seat."""
import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import get_seating_service, require_operator
from app.core.errors import NotFound
from app.db.session import get_db
from app.models.player_session import PlayerSession
from app.models.table_session import TableSession
from app.services.table_seating_service import TableSeatingService

router = APIRouter()
logger = logging.getLogger(__name__)


class OpenTableBody(BaseModel):
    game_id: str | None = Field(None, description="Game to run; defaults to the table's game")


class EndPlayerSessionBody(BaseModel):
    add_to_waitlist: bool = False
    game_id: str | None = None


@router.post("/{table_id}/open")
def open_table(
    room_id: str,
    table_id: str,
    body: OpenTableBody | None = None,
    _operator=Depends(require_operator),
    seating: TableSeatingService = Depends(get_seating_service),
) -> dict[str, Any]:
    session = seating.open_table(table_id, body.game_id if body else None, room_id=room_id)
    return {
        "success": True,
        "table_session_id": session.id,
        "table_id": table_id,
        "game_id": session.game_id,
    }


@router.post("/{table_id}/close")
def close_table(
    room_id: str,
    table_id: str,
    _operator=Depends(require_operator),
    seating: TableSeatingService = Depends(get_seating_service),
) -> dict[str, Any]:
    unseated = seating.close_table(table_id, room_id=room_id)
    return {"success": True, "table_id": table_id, "players_unseated": unseated}


@router.get("/{table_id}/seats")
def available_seats(
    room_id: str,
    table_id: str,
    _operator=Depends(require_operator),
    seating: TableSeatingService = Depends(get_seating_service),
) -> dict[str, Any]:
    seating.get_table(table_id, room_id)
    return {"success": True, "table_id": table_id, "available_seats": seating.get_available_seats(table_id)}


@router.get("/{table_id}/occupancy")
def occupancy(
    room_id: str,
    table_id: str,
    _operator=Depends(require_operator),
    seating: TableSeatingService = Depends(get_seating_service),
) -> dict[str, Any]:
    seating.get_table(table_id, room_id)
    return {"success": True, **seating.get_table_occupancy(table_id)}


@router.post("/player-sessions/{player_session_id}/end")
def end_player_session(
    room_id: str,
    player_session_id: str,
    body: EndPlayerSessionBody | None = None,
    db: Session = Depends(get_db),
    _operator=Depends(require_operator),
    seating: TableSeatingService = Depends(get_seating_service),
) -> dict[str, Any]:
    in_room = (
        db.query(PlayerSession.id)
        .join(TableSession, TableSession.id == PlayerSession.table_session_id)
        .filter(PlayerSession.id == player_session_id, TableSession.room_id == room_id)
        .first()
    )
    if in_room is None:
        raise NotFound("Player session not found")
    body = body or EndPlayerSessionBody()
    ps = seating.remove_player_from_table(player_session_id, body.add_to_waitlist, body.game_id)
    return {
        "success": True,
        "player_session_id": ps.id,
        "end_time": ps.end_time.isoformat() if ps.end_time else None,
    }
