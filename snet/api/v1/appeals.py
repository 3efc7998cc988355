from typing import Any, List
from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from snet.db.session import get_db
from snet.api import deps
from snet.models.user import User
from snet.schemas.appeal import AppealCreateRequest, AppealResponse, AppealReviewRequest
from snet.services.appeal_service import AppealService

router = APIRouter()


@router.get("", response_model=List[AppealResponse])
async def list_appeals(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    Counselors see every appeal; students see their own.
    """
    return await AppealService.list_appeals(db, current_user)


@router.post("", response_model=AppealResponse, status_code=status.HTTP_201_CREATED)
async def submit_appeal(
    request: AppealCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return await AppealService.submit_appeal(
        db,
        current_user,
        request.content_type.value,
        request.content_id,
        request.reason,
        original_content=request.original_content,
    )


@router.post("/{appeal_id}/review", response_model=AppealResponse)
async def review_appeal(
    appeal_id: UUID,
    request: AppealReviewRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_staff),
) -> Any:
    return await AppealService.review_appeal(db, current_user, appeal_id, request.approved, request.notes)
