from typing import Any, List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from snet.db.session import get_db
from snet.api import deps
from snet.models.user import User
from snet.schemas.community import StatusResponse
from snet.schemas.moderation import (
    FlaggedCountsResponse,
    FlaggedGroupResponse,
    FlagPendingRequest,
    PendingItemResponse,
    RejectPendingRequest,
)
from snet.services.review_service import ReviewService

router = APIRouter()


@router.get("/pending", response_model=List[PendingItemResponse])
async def list_pending(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_staff),
) -> Any:
    return await ReviewService.list_pending(db)


@router.post("/pending/{item_id}/approve", response_model=StatusResponse)
async def approve_pending(
    item_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_staff),
) -> Any:
    row = await ReviewService.approve(db, item_id, current_user)
    return {"status": "approved", "detail": {"content_id": str(row.id)}}


@router.post("/pending/{item_id}/reject", response_model=StatusResponse)
async def reject_pending(
    item_id: UUID,
    request: Optional[RejectPendingRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_staff),
) -> Any:
    await ReviewService.reject(db, item_id, current_user, reason=request.reason if request else None)
    return {"status": "rejected"}


@router.post("/pending/{item_id}/flag", response_model=StatusResponse)
async def flag_pending(
    item_id: UUID,
    request: FlagPendingRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_staff),
) -> Any:
    flagged = await ReviewService.flag_and_reject(db, item_id, current_user, request.flag_level, request.category)
    return {"status": "flagged", "detail": {"flagged_id": str(flagged.id)}}


@router.get("/flagged", response_model=List[FlaggedGroupResponse])
async def list_flagged(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_staff),
) -> Any:
    return await ReviewService.list_flagged_grouped(db)


@router.get("/flagged/counts", response_model=FlaggedCountsResponse)
async def flagged_counts(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_staff),
) -> Any:
    return await ReviewService.counts(db)


@router.post("/flagged/{item_id}/resolve", response_model=StatusResponse)
async def resolve_flagged(
    item_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_staff),
) -> Any:
    await ReviewService.resolve(db, item_id, current_user)
    return {"status": "resolved"}


@router.post("/flagged/users/{user_id}/resolve", response_model=StatusResponse)
async def resolve_flagged_for_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_staff),
) -> Any:
    count = await ReviewService.resolve_all_for_user(db, user_id, current_user)
    return {"status": "resolved", "detail": {"count": count}}
