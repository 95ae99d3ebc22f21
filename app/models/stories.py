import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base

class Story(Base):
    __tablename__ = "stories"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    author_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    text = Column(String(300), nullable=False, default="")
    media_url = Column(String, nullable=False, default="")
    media_type = Column(String, nullable=False, default="none")  # none, image, video
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    views_count = Column(Integer, nullable=False, default=0)

    author = relationship("User", back_populates="stories")


class StoryView(Base):
    __tablename__ = "story_views"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    story_id = Column(String, ForeignKey("stories.id", ondelete="CASCADE"), index=True, nullable=False)
    viewer_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    viewed_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("story_id", "viewer_id", name="uq_story_views_story_viewer"),
    )
