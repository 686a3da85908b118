"""Physical table in a room. Seats are numbered 1..seat_count."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from app.db.base import Base
from app.models._ids import new_id


class PokerTable(Base):
    __tablename__ = "tables"

    id = Column(String(36), primary_key=True, default=new_id)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    game_id = Column(String(36), ForeignKey("games.id"), nullable=True, index=True)  # default game when opened
    name = Column(String(64), nullable=False)
    seat_count = Column(Integer, nullable=False, default=9)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
