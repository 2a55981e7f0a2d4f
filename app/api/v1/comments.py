"""Comment endpoints"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_optional_user
from app.core.exceptions import AppException
from app.database import get_db
from app.models.user import User
from app.schemas.comment import (CommentCreate, CommentListResponse,
                                 CommentResponse, CommentUpdate,
                                 GuestPasswordCheck, GuestPasswordResult)
from app.services.cache_service import CacheService
from app.services.comment_service import CommentService

router = APIRouter(tags=["Comments"])


def _user_id(user: Optional[User]) -> Optional[UUID]:
    return user.id if user else None


@router.get("/settlements/{settlement_id}/comments", response_model=CommentListResponse)
async def list_comments(settlement_id: UUID, db: AsyncSession = Depends(get_db)):
    """
    Get the comment thread of a settlement.

    Pinned comments come first, then newest first; replies are nested
    oldest first.

    Raises:
        404: If settlement not found
    """
    try:
        return await CommentService.list_comments(settlement_id, db)
    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/settlements/{settlement_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def post_comment(
    settlement_id: UUID,
    comment_data: CommentCreate,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    """
    Post a comment or reply.

    Signed-in users post under the treasurer name. Guests must send
    `guest_name` and `password`; the password is needed later to edit or
    delete the comment.

    Raises:
        400: Empty comment, too many images, or missing guest credentials
        404: If settlement or parent comment not found
    """
    cache_key = None
    if idempotency_key:
        principal = current_user.id if current_user else f"guest:{comment_data.guest_name}"
        cache_key = CacheService.idempotency_key(
            f"comment:{settlement_id}", idempotency_key, principal
        )
        cached = await CacheService.get_json(cache_key)
        if cached:
            return CommentResponse(**cached)

    try:
        comment = await CommentService.post_comment(
            settlement_id, comment_data, _user_id(current_user), db
        )
    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    response = CommentService.to_response(comment)
    if cache_key:
        await CacheService.set_json(cache_key, response.model_dump(mode="json"))
    return response


@router.post("/comments/{comment_id}/verify-password", response_model=GuestPasswordResult)
async def verify_guest_password(
    comment_id: UUID,
    body: GuestPasswordCheck,
    db: AsyncSession = Depends(get_db),
):
    """Check a guest comment password before showing edit controls"""
    try:
        valid = await CommentService.verify_guest_password(comment_id, body.password, db)
    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return GuestPasswordResult(valid=valid)


@router.patch("/comments/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: UUID,
    update_data: CommentUpdate,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Edit comment text.

    Raises:
        401: Guest comment without password
        403: Wrong password or not the author
        404: If comment not found
    """
    try:
        comment = await CommentService.update_comment(
            comment_id, update_data, _user_id(current_user), db
        )
    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return CommentService.to_response(comment)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: UUID,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    guest_password: Optional[str] = Header(None, alias="X-Guest-Password"),
):
    """
    Delete a comment (soft delete).

    Guests pass the comment password in the `X-Guest-Password` header.

    Raises:
        401: Guest comment without password
        403: Wrong password or not allowed
        404: If comment not found
    """
    try:
        await CommentService.delete_comment(
            comment_id, _user_id(current_user), db, password=guest_password
        )
    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/comments/{comment_id}/pin", response_model=CommentResponse)
async def pin_comment(
    comment_id: UUID,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Pin a top-level comment (settlement owner only)"""
    try:
        comment = await CommentService.set_pinned(comment_id, True, _user_id(current_user), db)
    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return CommentService.to_response(comment)


@router.delete("/comments/{comment_id}/pin", response_model=CommentResponse)
async def unpin_comment(
    comment_id: UUID,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Unpin a comment (settlement owner only)"""
    try:
        comment = await CommentService.set_pinned(comment_id, False, _user_id(current_user), db)
    except AppException as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return CommentService.to_response(comment)
