"""Seat occupancy: one player in one seat of an open table session until end_time is set."""
from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.sql import func

from app.db.base import Base
from app.models._ids import new_id


class PlayerSession(Base):
    __tablename__ = "player_sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    table_session_id = Column(String(36), ForeignKey("table_sessions.id"), nullable=False, index=True)
    player_id = Column(String(36), ForeignKey("players.id"), nullable=False, index=True)
    seat_number = Column(Integer, nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # At most one open occupant per seat; concurrent seat assignments lose at insert time
    __table_args__ = (
        Index(
            "uq_player_sessions_open_seat",
            "table_session_id",
            "seat_number",
            unique=True,
            postgresql_where=text("end_time IS NULL"),
            sqlite_where=text("end_time IS NULL"),
        ),
    )
