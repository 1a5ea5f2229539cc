"""Like model: join row between a user and one liked target."""

from sqlalchemy import CheckConstraint, Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
import uuid

from database import Base
from models.timestamps import utcnow


class Like(Base):
    """A user's like on exactly one of video, comment or tweet."""

    __tablename__ = "likes"
    __table_args__ = (
        UniqueConstraint("liked_by_id", "video_id", name="uq_likes_user_video"),
        UniqueConstraint("liked_by_id", "comment_id", name="uq_likes_user_comment"),
        UniqueConstraint("liked_by_id", "tweet_id", name="uq_likes_user_tweet"),
        CheckConstraint(
            "(CASE WHEN video_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN comment_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN tweet_id IS NULL THEN 0 ELSE 1 END) = 1",
            name="ck_likes_single_target",
        ),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    liked_by_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    video_id = Column(String, nullable=True, index=True)
    comment_id = Column(String, nullable=True, index=True)
    tweet_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
