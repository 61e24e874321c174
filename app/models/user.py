from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String
from sqlalchemy.sql import func

from app.models.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False)
    # anonymous is never stored; it is the absence of a user
    role = Column(String(16), nullable=False, default="user", server_default="user")
    is_banned = Column(Boolean, nullable=False, default=False, server_default="false")
    # Home location (nullable until the profile is completed)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
