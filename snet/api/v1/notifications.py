from typing import Any
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from snet.db.session import get_db
from snet.api import deps
from snet.models.user import User
from snet.schemas.community import StatusResponse
from snet.schemas.notification import NotificationListResponse
from snet.services.notification_service import NotificationService

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    limit: int = 50,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    items, unread = await NotificationService.list_for_user(db, current_user.id, limit=limit)
    return {"items": items, "unread_count": unread}


@router.post("/read-all", response_model=StatusResponse)
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    count = await NotificationService.mark_all_as_read(db, current_user.id)
    return {"status": "updated", "detail": {"count": count}}


@router.delete("/read", response_model=StatusResponse)
async def delete_read(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    count = await NotificationService.delete_all_read(db, current_user.id)
    return {"status": "deleted", "detail": {"count": count}}


@router.post("/{notification_id}/read", response_model=StatusResponse)
async def mark_read(
    notification_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    await NotificationService.mark_as_read(db, current_user.id, notification_id)
    return {"status": "updated"}


@router.delete("/{notification_id}", response_model=StatusResponse)
async def delete_notification(
    notification_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    await NotificationService.delete(db, current_user.id, notification_id)
    return {"status": "deleted"}
