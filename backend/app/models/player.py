"""Player profile, linked to the auth provider by auth_id (JWT sub)."""
from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from app.db.base import Base
from app.models._ids import new_id


class Player(Base):
    __tablename__ = "players"

    id = Column(String(36), primary_key=True, default=new_id)
    auth_id = Column(String(64), nullable=True, unique=True, index=True)
    alias = Column(String(64), nullable=True)
    phone_number = Column(String(32), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
