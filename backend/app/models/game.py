"""A game offered by a room (e.g. 1/2 NLH). Players queue per game."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from app.db.base import Base
from app.models._ids import new_id


class Game(Base):
    __tablename__ = "games"

    id = Column(String(36), primary_key=True, default=new_id)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    game_type = Column(String(32), nullable=False, default="texas_holdem")  # texas_holdem | omaha | ...
    small_blind = Column(Integer, nullable=False, default=1)
    big_blind = Column(Integer, nullable=False, default=2)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
