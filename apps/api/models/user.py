"""User model."""

from sqlalchemy import Column, String, DateTime, JSON, Text
from sqlalchemy.sql import func
import uuid

from database import Base
from models.timestamps import utcnow


class User(Base):
    """Registered account; doubles as a channel for subscriptions."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    full_name = Column(String, nullable=False, index=True)
    avatar = Column(String, nullable=False)
    cover_image = Column(String, nullable=True)
    password_hash = Column(Text, nullable=False)
    refresh_token_hash = Column(Text, nullable=True)
    # Video ids in append order.
    watch_history = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


PRIVATE_USER_FIELDS = ("password_hash", "refresh_token_hash")
