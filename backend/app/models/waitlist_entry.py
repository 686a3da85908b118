"""
One player's request to join the queue for one game.

Status moves calledin -> waiting -> notified -> seated (or cancelled/expired) only through
WaitlistStatusManager / ExpirySweeper. Rows are never deleted; terminal entries are history.
"""
from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.sql import func

from app.core.status import CancelledBy, WaitlistStatus
from app.db.base import Base
from app.models._ids import new_id


def _enum_values(enum_cls):
    return [m.value for m in enum_cls]


class WaitlistEntry(Base):
    __tablename__ = "waitlist_entries"

    id = Column(String(36), primary_key=True, default=new_id)
    player_id = Column(String(36), ForeignKey("players.id"), nullable=True, index=True)
    game_id = Column(String(36), ForeignKey("games.id"), nullable=True, index=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=True, index=True)
    status = Column(
        Enum(WaitlistStatus, name="waitlist_status", values_callable=_enum_values),
        nullable=False,
        default=WaitlistStatus.CALLEDIN,
    )
    position = Column(Integer, nullable=True)  # queue rank among waiting entries of the game
    entry_method = Column(String(16), nullable=True)  # callin | inperson
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)  # calledin anchor
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    notified_at = Column(DateTime(timezone=True), nullable=True)  # notified anchor
    cancelled_at = Column(DateTime(timezone=True), nullable=True)  # also set on expiry
    cancelled_by = Column(
        Enum(CancelledBy, name="cancelled_by", values_callable=_enum_values),
        nullable=True,
    )
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_waitlist_entries_room_status", "room_id", "status"),
        Index("ix_waitlist_entries_game_status_position", "game_id", "status", "position"),
    )
