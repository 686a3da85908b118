"""
Player notifications API: the persisted copy of every waitlist message sent to the player.

Player identified by the bearer token. Supports: list (with unread filter), mark one read, mark all read.
"""
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_current_player
from app.core.constants import NOTIFICATIONS_LIST_LIMIT
from app.core.errors import NotFound
from app.db.session import get_db
from app.models.player import Player
from app.models.player_notification import PlayerNotification

router = APIRouter()
logger = logging.getLogger(__name__)


def _as_dict(r: PlayerNotification) -> dict[str, Any]:
    return {
        "id": r.id,
        "type": r.type,
        "priority": r.priority,
        "title": r.title,
        "message": r.message,
        "read": r.read_at is not None,
        "read_at": r.read_at.isoformat() if r.read_at else None,
        "created_at": r.created_at.isoformat() if r.created_at else None,
        "metadata": r.payload or {},
    }


# --- List ---


@router.get("/notifications")
def list_notifications(
    db: Session = Depends(get_db),
    player: Player = Depends(get_current_player),
    limit: int = Query(80, ge=1, le=NOTIFICATIONS_LIST_LIMIT),
    unread_only: bool = Query(False),
) -> dict[str, Any]:
    """
    List the player's notifications, newest first.
    Use unread_only=true to only return unread (e.g. for badge count or filtered view).
    """
    q = db.query(PlayerNotification).filter(PlayerNotification.player_id == player.id)
    if unread_only:
        q = q.filter(PlayerNotification.read_at.is_(None))
    rows = q.order_by(PlayerNotification.created_at.desc(), PlayerNotification.id.desc()).limit(limit).all()
    unread_count = (
        db.query(PlayerNotification)
        .filter(PlayerNotification.player_id == player.id, PlayerNotification.read_at.is_(None))
        .count()
    )
    return {"success": True, "notifications": [_as_dict(r) for r in rows], "unread_count": unread_count}


# --- Mark one read ---


@router.patch("/notifications/{notification_id}/read")
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    player: Player = Depends(get_current_player),
) -> dict[str, Any]:
    row = (
        db.query(PlayerNotification)
        .filter(PlayerNotification.id == notification_id, PlayerNotification.player_id == player.id)
        .first()
    )
    if not row:
        raise NotFound("Notification not found")
    if row.read_at is None:
        row.read_at = datetime.now(timezone.utc)
        db.commit()
    return {"success": True, "id": notification_id, "read_at": row.read_at.isoformat()}


# --- Mark all read ---


@router.post("/notifications/mark-all-read")
def mark_all_read(
    db: Session = Depends(get_db),
    player: Player = Depends(get_current_player),
) -> dict[str, Any]:
    """Mark all of the player's notifications as read ('Clear all' in the app)."""
    now = datetime.now(timezone.utc)
    updated = (
        db.query(PlayerNotification)
        .filter(PlayerNotification.player_id == player.id, PlayerNotification.read_at.is_(None))
        .update({PlayerNotification.read_at: now}, synchronize_session=False)
    )
    db.commit()
    return {"success": True, "marked_count": updated}
