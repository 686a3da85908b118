"""Room staff. An active operator row for (auth_id, room_id) grants access to that room's admin routes."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.sql import func

from app.db.base import Base
from app.models._ids import new_id


class Operator(Base):
    __tablename__ = "operators"

    id = Column(String(36), primary_key=True, default=new_id)
    auth_id = Column(String(64), nullable=False, index=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    role = Column(String(16), nullable=False, default="dealer")  # admin | supervisor | dealer
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
