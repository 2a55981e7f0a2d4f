"""Comment business logic"""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.exceptions import (AuthenticationError, AuthorizationError,
                                 NotFoundError, ValidationError)
from app.core.security import hash_password, verify_password
from app.models.comment import Comment
from app.repositories.comment_repository import CommentRepository
from app.schemas.comment import (CommentCreate, CommentListResponse,
                                 CommentResponse, CommentUpdate)
from app.services.comment_tree import author_name, build_comment_tree, count_visible
from app.services.settlement_service import SettlementService

logger = logging.getLogger(__name__)


class CommentService:
    """Service for comment operations"""

    @staticmethod
    def to_response(comment: Comment) -> CommentResponse:
        settings = get_settings()
        return CommentResponse(
            id=comment.id,
            settlement_id=comment.settlement_id,
            parent_comment_id=comment.parent_comment_id,
            content=comment.content,
            image_url=list(comment.image_url or []),
            author_name=author_name(comment, settings.owner_display_name),
            user_id=comment.user_id,
            is_guest=comment.is_guest,
            is_deleted=comment.is_deleted,
            is_pinned=comment.is_pinned,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
        )

    @staticmethod
    async def get_comment(db: AsyncSession, comment_id: UUID) -> Comment:
        """
        Load a comment that has not been deleted.

        Raises:
            NotFoundError: If missing or deleted
        """
        comment = await CommentRepository.get_by_id(db, comment_id)
        if not comment or comment.is_deleted:
            raise NotFoundError("Comment not found")
        return comment

    @staticmethod
    async def list_comments(settlement_id: UUID, db: AsyncSession) -> CommentListResponse:
        """
        Get the comment thread of a settlement.

        Raises:
            NotFoundError: If settlement not found
        """
        await SettlementService.get_settlement(db, settlement_id)
        comments = await CommentRepository.get_for_settlement(db, settlement_id)
        tree = build_comment_tree(comments, get_settings().owner_display_name)
        return CommentListResponse(items=tree, visible_count=count_visible(tree))

    @staticmethod
    async def post_comment(
        settlement_id: UUID,
        comment_data: CommentCreate,
        user_id: Optional[UUID],
        db: AsyncSession,
    ) -> Comment:
        """
        Post a comment or reply as a user or as a guest.

        Args:
            settlement_id: Settlement UUID
            comment_data: Content, images, optional parent and guest credentials
            user_id: Current user, None for guests
            db: Database session

        Returns:
            Created comment

        Raises:
            NotFoundError: If settlement or parent comment not found
            ValidationError: If the comment is empty, has too many images,
                or a guest omits name or password
        """
        settings = get_settings()
        await SettlementService.get_settlement(db, settlement_id)

        content = comment_data.content.strip()
        images = [url for url in comment_data.image_url if url.strip()]
        if not content and not images:
            raise ValidationError("Comment must have text or at least one image")
        if len(images) > settings.max_comment_images:
            raise ValidationError(
                f"A comment can have at most {settings.max_comment_images} images"
            )

        if comment_data.parent_comment_id is not None:
            parent = await CommentRepository.get_by_id(db, comment_data.parent_comment_id)
            if not parent or parent.is_deleted or parent.settlement_id != settlement_id:
                raise NotFoundError("Parent comment not found")

        comment = Comment(
            settlement_id=settlement_id,
            parent_comment_id=comment_data.parent_comment_id,
            content=content,
            image_url=images,
        )
        if user_id is not None:
            comment.user_id = user_id
        else:
            guest_name = (comment_data.guest_name or "").strip()
            if not guest_name or not comment_data.password:
                raise ValidationError("Guests must provide a name and password")
            comment.guest_name = guest_name
            comment.password_hash = hash_password(comment_data.password)

        created = await CommentRepository.create(db, comment)
        await db.commit()
        logger.info("Comment %s posted on settlement %s", created.id, settlement_id)
        return created

    @staticmethod
    async def verify_guest_password(comment_id: UUID, password: str, db: AsyncSession) -> bool:
        """
        Check a guest comment password.

        Raises:
            NotFoundError: If comment not found
        """
        comment = await CommentService.get_comment(db, comment_id)
        if not comment.is_guest:
            return False
        return verify_password(password, comment.password_hash)

    @staticmethod
    def _check_guest_password(comment: Comment, password: Optional[str]) -> None:
        if not password:
            raise AuthenticationError("Password is required for guest comments")
        if not verify_password(password, comment.password_hash):
            raise AuthorizationError("Incorrect password")

    @staticmethod
    async def update_comment(
        comment_id: UUID,
        update_data: CommentUpdate,
        user_id: Optional[UUID],
        db: AsyncSession,
    ) -> Comment:
        """
        Edit comment text.

        Guest comments always need their password. User comments can be
        edited by their author or the settlement owner.

        Raises:
            NotFoundError: If comment not found
            AuthenticationError: If a guest password is missing
            AuthorizationError: If not allowed to edit
            ValidationError: If the result would be empty
        """
        comment = await CommentService.get_comment(db, comment_id)

        if comment.is_guest:
            CommentService._check_guest_password(comment, update_data.password)
        else:
            settlement = await SettlementService.get_settlement(db, comment.settlement_id)
            if user_id is None or (
                comment.user_id != user_id and not SettlementService.is_owner(settlement, user_id)
            ):
                raise AuthorizationError("You can only edit your own comments")

        content = update_data.content.strip()
        if not content and not comment.image_url:
            raise ValidationError("Comment must have text or at least one image")

        comment.content = content
        updated = await CommentRepository.save(db, comment)
        await db.commit()
        return updated

    @staticmethod
    async def delete_comment(
        comment_id: UUID,
        user_id: Optional[UUID],
        db: AsyncSession,
        password: Optional[str] = None,
    ) -> bool:
        """
        Soft-delete a comment.

        The settlement owner can delete anything. Any signed-in user can
        remove a guest comment; guests need the comment password. User
        comments can otherwise only be deleted by their author.

        Raises:
            NotFoundError: If comment not found
            AuthenticationError: If a guest password is missing
            AuthorizationError: If not allowed to delete
        """
        comment = await CommentService.get_comment(db, comment_id)
        settlement = await SettlementService.get_settlement(db, comment.settlement_id)

        if SettlementService.is_owner(settlement, user_id):
            pass
        elif comment.is_guest:
            if user_id is None:
                CommentService._check_guest_password(comment, password)
        elif user_id is None or comment.user_id != user_id:
            raise AuthorizationError("You can only delete your own comments")

        comment.is_deleted = True
        comment.is_pinned = False
        await CommentRepository.save(db, comment)
        await db.commit()
        logger.info("Comment %s deleted", comment.id)
        return True

    @staticmethod
    async def set_pinned(
        comment_id: UUID,
        pinned: bool,
        user_id: Optional[UUID],
        db: AsyncSession,
    ) -> Comment:
        """
        Pin or unpin a top-level comment.

        Raises:
            NotFoundError: If comment not found
            AuthorizationError: If user is not the settlement owner
            ValidationError: If the comment is a reply
        """
        comment = await CommentService.get_comment(db, comment_id)
        settlement = await SettlementService.get_settlement(db, comment.settlement_id)
        if not SettlementService.is_owner(settlement, user_id):
            raise AuthorizationError("Only the settlement owner can pin comments")
        if pinned and comment.parent_comment_id is not None:
            raise ValidationError("Only top-level comments can be pinned")

        comment.is_pinned = pinned
        updated = await CommentRepository.save(db, comment)
        await db.commit()
        return updated
