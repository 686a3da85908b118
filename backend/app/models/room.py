"""A poker room (tenant). Every game, table and waitlist entry belongs to one."""
from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.sql import func

from app.db.base import Base
from app.models._ids import new_id


class Room(Base):
    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
