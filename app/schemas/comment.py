"""Comment schemas"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class CommentCreate(BaseModel):
    """Schema for posting a comment or reply"""

    content: str = Field(default="", max_length=5000)
    image_url: List[str] = Field(default_factory=list, description="Already-uploaded image URLs")
    parent_comment_id: Optional[UUID] = None
    # Guest posting only
    guest_name: Optional[str] = Field(default=None, max_length=100)
    password: Optional[str] = Field(default=None, max_length=128)


class CommentUpdate(BaseModel):
    """Schema for editing comment content"""

    content: str = Field(..., max_length=5000)
    password: Optional[str] = Field(default=None, description="Required for guest comments")


class GuestPasswordCheck(BaseModel):
    password: str


class GuestPasswordResult(BaseModel):
    valid: bool


class CommentNode(BaseModel):
    """A comment in the rendered thread; tombstones carry no content"""

    id: UUID
    settlement_id: UUID
    parent_comment_id: Optional[UUID] = None
    content: Optional[str] = None
    image_url: List[str] = Field(default_factory=list)
    author_name: Optional[str] = None
    user_id: Optional[UUID] = None
    is_guest: bool = False
    is_deleted: bool = False
    is_pinned: bool = False
    created_at: datetime
    replies: List["CommentNode"] = Field(default_factory=list)


class CommentResponse(BaseModel):
    """Single comment after a write"""

    id: UUID
    settlement_id: UUID
    parent_comment_id: Optional[UUID] = None
    content: str
    image_url: List[str]
    author_name: str
    user_id: Optional[UUID] = None
    is_guest: bool
    is_deleted: bool
    is_pinned: bool
    created_at: datetime
    updated_at: datetime


class CommentListResponse(BaseModel):
    """Comment thread of a settlement"""

    items: List[CommentNode]
    visible_count: int
