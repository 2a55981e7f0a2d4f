"""Comment model"""
import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from app.database import Base


class Comment(Base):
    """Threaded comment on a settlement, posted by a user or a guest"""

    __tablename__ = "comments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    settlement_id = Column(Uuid, ForeignKey("settlements.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_comment_id = Column(Uuid, ForeignKey("comments.id"), nullable=True, index=True)
    content = Column(Text, nullable=False, default="")
    image_url = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)
    guest_name = Column(String(100), nullable=True)
    # Only set for guest-authored comments
    password_hash = Column(String(255), nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)
    is_pinned = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    settlement = relationship("Settlement", back_populates="comments")
    user = relationship("User", back_populates="comments")

    @property
    def is_guest(self) -> bool:
        return self.password_hash is not None

    def __repr__(self) -> str:
        return f"<Comment(id={self.id}, settlement_id={self.settlement_id}, deleted={self.is_deleted})>"
