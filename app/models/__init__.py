"""SQLAlchemy models"""
from app.models.user import User
from app.models.settlement import Settlement, SettlementStatus
from app.models.comment import Comment

__all__ = ["User", "Settlement", "SettlementStatus", "Comment"]
