from sqlalchemy import Column, String, DateTime, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.sql import func
import uuid

from app.database import Base
from app.schemas.friends import MarkDirection

class FriendRequestMark(Base):
    """
    Per-user pending bookkeeping. A pending request a -> b is recorded twice:
    (a, b, OUTGOING) on the sender and (b, a, INCOMING) on the receiver.
    """
    __tablename__ = "friend_request_marks"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    other_user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    direction = Column(Enum(MarkDirection), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "other_user_id", "direction", name="uq_friend_request_marks_edge"),
    )
