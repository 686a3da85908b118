"""Push notification registration: a player's device tokens for waitlist alerts."""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import get_current_player
from app.db.session import get_db
from app.models.player import Player
from app.models.push_token import PushToken

router = APIRouter()
logger = logging.getLogger(__name__)


class RegisterPushBody(BaseModel):
    device_token: str = Field(..., min_length=1, max_length=256, description="APNs device token (hex string)")
    platform: str = Field(default="ios", pattern="^(ios|android)$")


@router.post("/push/register")
def register_push_token(
    body: RegisterPushBody,
    db: Session = Depends(get_db),
    player: Player = Depends(get_current_player),
):
    """
    Register the player's device for "seat available" and expiry pushes.
    Idempotent: the same token is upserted (updated_at refreshed, moved to this player if it changed hands).
    """
    token_str = body.device_token.strip()
    existing = db.query(PushToken).filter(PushToken.device_token == token_str).first()
    if existing:
        existing.player_id = player.id
        existing.platform = body.platform
        existing.updated_at = datetime.now(timezone.utc)
        db.commit()
        return {"success": True, "message": "Token already registered"}
    db.add(PushToken(player_id=player.id, device_token=token_str, platform=body.platform))
    db.commit()
    logger.info("Registered push token for player=%s platform=%s", player.id, body.platform)
    return {"success": True, "message": "Token registered"}
