"""Player notification: persisted copy of every waitlist message sent to a player.

type: status_change | position_change | expiry_warning (for filtering in the player UI).
priority: low | medium | high | urgent; urgent/high are also pushed to the player's devices.
read_at: NULL = unread; set when the player marks it read.
metadata: entry_id, game_name, status, minutes_remaining, ... (type-specific).
"""
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from app.db.base import Base


class PlayerNotification(Base):
    __tablename__ = "player_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(String(36), ForeignKey("players.id"), nullable=False, index=True)
    type = Column(String(32), nullable=False, default="status_change", index=True)
    priority = Column(String(16), nullable=False, default="medium")
    title = Column(String(128), nullable=False)
    message = Column(Text, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    payload = Column("metadata", JSON, nullable=False, default=dict)  # column name 'metadata' in DB
