"""Settlement endpoints"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_optional_user, get_settlement_autosaver
from app.core.exceptions import AppException
from app.database import get_db
from app.models.user import User
from app.repositories.settlement_repository import SORT_ORDERS
from app.schemas.common import PaginationMeta
from app.schemas.settlement import (SettlementComplete, SettlementCreate,
                                    SettlementData, SettlementListItem,
                                    SettlementListResponse, SettlementResponse,
                                    SheetEdit)
from app.services.autosave_service import SettlementAutosaver
from app.services.cache_service import CacheService
from app.services.settlement_service import SettlementService

router = APIRouter(prefix="/settlements", tags=["Settlements"])


def _http_error(e: AppException) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


def _user_id(user: Optional[User]) -> Optional[UUID]:
    return user.id if user else None


@router.post("", response_model=SettlementResponse, status_code=status.HTTP_201_CREATED)
async def create_settlement(
    settlement_data: SettlementCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    autosaver: SettlementAutosaver = Depends(get_settlement_autosaver),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    """
    Create a new settlement with a default sheet.

    Supports idempotency via the `Idempotency-Key` header: repeating a key
    within the TTL returns the original response instead of creating a
    second settlement.

    Args:
        settlement_data: Optional title and subtitle
        current_user: Current authenticated user (becomes the owner)
        db: Database session
        autosaver: Autosave buffer
        idempotency_key: Optional idempotency key

    Returns:
        Created settlement with its summary
    """
    cache_key = None
    if idempotency_key:
        cache_key = CacheService.idempotency_key("settlement", idempotency_key, current_user.id)
        cached = await CacheService.get_json(cache_key)
        if cached:
            return SettlementResponse(**cached)

    settlement = await SettlementService.create_settlement(settlement_data, current_user.id, db)
    response = SettlementService.build_response(
        settlement,
        SettlementData.model_validate(settlement.data),
        current_user.id,
        autosaver,
    )

    if cache_key:
        await CacheService.set_json(cache_key, response.model_dump(mode="json"))
    return response


@router.get("", response_model=SettlementListResponse)
async def list_settlements(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    search: Optional[str] = Query(None, max_length=200, description="Title contains (case-insensitive)"),
    sort: str = Query("latest", description="latest, oldest or title"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    List the current user's settlements.

    Raises:
        400: If the sort order is unknown
    """
    if sort not in SORT_ORDERS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"sort must be one of: {', '.join(SORT_ORDERS)}",
        )

    settlements, total_count = await SettlementService.list_settlements(
        db,
        page=page,
        page_size=page_size,
        search=search,
        sort=sort,
        owner_id=current_user.id,
    )
    total_pages = (total_count + page_size - 1) // page_size if total_count > 0 else 0

    return SettlementListResponse(
        items=[SettlementListItem.model_validate(s) for s in settlements],
        pagination=PaginationMeta(
            page=page,
            page_size=page_size,
            total_items=total_count,
            total_pages=total_pages,
        ),
    )


@router.get("/recent", response_model=List[SettlementListItem])
async def recent_settlements(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Dashboard: five most recently updated settlements"""
    settlements = await SettlementService.get_recent(current_user.id, db)
    return [SettlementListItem.model_validate(s) for s in settlements]


@router.get("/{settlement_id}", response_model=SettlementResponse)
async def get_settlement(
    settlement_id: UUID,
    participant_id: Optional[int] = Query(None, ge=1, description="Show one participant's view"),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    autosaver: SettlementAutosaver = Depends(get_settlement_autosaver),
):
    """
    Get a settlement and its computed summary.

    Open to guests (no token); guests always get a read-only view.

    Raises:
        404: If settlement not found or deleted
    """
    try:
        return await SettlementService.get_settlement_detail(
            settlement_id, _user_id(current_user), db, autosaver, participant_id=participant_id
        )
    except AppException as e:
        raise _http_error(e)


@router.put("/{settlement_id}", response_model=SettlementResponse)
async def replace_settlement(
    settlement_id: UUID,
    sheet: SettlementData,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    autosaver: SettlementAutosaver = Depends(get_settlement_autosaver),
):
    """
    Replace the whole sheet and save it immediately.

    Raises:
        403: Guest, or settlement archived
        404: If settlement not found
    """
    try:
        return await SettlementService.replace_data(
            settlement_id, sheet, _user_id(current_user), db, autosaver
        )
    except AppException as e:
        raise _http_error(e)


@router.post("/{settlement_id}/edits", response_model=SettlementResponse)
async def edit_settlement(
    settlement_id: UUID,
    edit: SheetEdit,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    autosaver: SettlementAutosaver = Depends(get_settlement_autosaver),
):
    """
    Apply one sheet edit; the result is autosaved after a short pause.

    A refused edit (removing the last participant or expense) returns the
    unchanged sheet with a `notice`.

    Raises:
        400: If the edit references unknown ids
        403: Guest, or settlement archived and the edit is not a payment toggle
        404: If settlement not found
    """
    try:
        return await SettlementService.apply_edit(
            settlement_id, edit, _user_id(current_user), db, autosaver
        )
    except AppException as e:
        raise _http_error(e)


@router.post("/{settlement_id}/complete", response_model=SettlementResponse)
async def complete_settlement(
    settlement_id: UUID,
    body: Optional[SettlementComplete] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    autosaver: SettlementAutosaver = Depends(get_settlement_autosaver),
):
    """
    Finish a settlement (active -> archived).

    Raises:
        400: If the settlement is not active
        403: If not the owner
        404: If settlement not found
    """
    try:
        return await SettlementService.complete_settlement(
            settlement_id,
            current_user.id,
            db,
            autosaver,
            final_sheet=body.data if body else None,
        )
    except AppException as e:
        raise _http_error(e)


@router.post("/{settlement_id}/reactivate", response_model=SettlementResponse)
async def reactivate_settlement(
    settlement_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    autosaver: SettlementAutosaver = Depends(get_settlement_autosaver),
):
    """
    Reopen an archived settlement (archived -> active).

    Raises:
        400: If the settlement is not archived
        403: If not the owner
        404: If settlement not found
    """
    try:
        return await SettlementService.reactivate_settlement(
            settlement_id, current_user.id, db, autosaver
        )
    except AppException as e:
        raise _http_error(e)


@router.delete("/{settlement_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_settlement(
    settlement_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    autosaver: SettlementAutosaver = Depends(get_settlement_autosaver),
):
    """
    Delete a settlement (soft delete, cannot be undone).

    Raises:
        403: If not the owner
        404: If settlement not found
    """
    try:
        await SettlementService.delete_settlement(settlement_id, current_user.id, db, autosaver)
    except AppException as e:
        raise _http_error(e)
