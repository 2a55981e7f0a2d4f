"""Settlement model"""
import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from app.database import Base


DEFAULT_TITLE = "New settlement"


class SettlementStatus(str, enum.Enum):
    """Lifecycle of a settlement sheet"""
    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"


class Settlement(Base):
    """
    Settlement (expense sheet).

    The sheet content (title, participants, expenses, deductions, payment
    status) lives in a single JSON blob that is replaced on every save.
    """

    __tablename__ = "settlements"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    owner_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    data = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)
    status = Column(
        Enum(SettlementStatus, values_callable=lambda e: [m.value for m in e]),
        default=SettlementStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    owner = relationship("User", back_populates="settlements")
    comments = relationship("Comment", back_populates="settlement", cascade="all, delete-orphan")

    @property
    def title(self) -> str:
        return (self.data or {}).get("title") or DEFAULT_TITLE

    def __repr__(self) -> str:
        return f"<Settlement(id={self.id}, title={self.title!r}, status={self.status})>"
