from typing import Any, List, Optional
from uuid import UUID
from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from snet.db.session import get_db
from snet.api import deps
from snet.models.user import User
from snet.schemas.chat import (
    ChatMessageRequest,
    ChatMessageResponse,
    ChatRoomResponse,
    CounseledRequest,
    StudentNoteRequest,
    StudentNoteResponse,
    TransferRequest,
    UnreadCountResponse,
    UrgencyRequest,
)
from snet.schemas.community import StatusResponse
from snet.services.chat_service import ChatService
from snet.services.triage_service import TriageService, triage_timer

router = APIRouter()


@router.post("/room", response_model=ChatRoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    room = await ChatService.create_room(db, current_user)
    triage_timer.arm(room.id)
    return room


@router.get("/room", response_model=Optional[ChatRoomResponse])
async def get_my_room(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return await ChatService.get_student_room(db, current_user)


@router.delete("/room", response_model=StatusResponse)
async def delete_my_room(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    room = await ChatService.get_student_room(db, current_user)
    if room is None:
        return {"status": "not_found"}
    await ChatService.delete_room(db, current_user, room.id)
    triage_timer.forget(room.id)
    return {"status": "deleted"}


@router.delete("/rooms/{room_id}", response_model=StatusResponse)
async def delete_room(
    room_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """The owning student or an admin may delete a room."""
    await ChatService.delete_room(db, current_user, room_id)
    triage_timer.forget(room_id)
    return {"status": "deleted"}


@router.get("/rooms", response_model=List[ChatRoomResponse])
async def list_rooms(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_staff),
) -> Any:
    return await ChatService.list_rooms_for_staff(db, current_user)


@router.get("/rooms/{room_id}/messages", response_model=List[ChatMessageResponse])
async def list_messages(
    room_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return await ChatService.list_messages(db, current_user, room_id)


@router.post("/rooms/{room_id}/messages", response_model=ChatMessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    room_id: UUID,
    request: ChatMessageRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    Store a chat message. A counselor message switches the AI assistant off
    for the room; a student message may get an AI reply in the background.
    """
    message = await ChatService.send_message(db, current_user, room_id, request.content)
    if current_user.is_staff:
        triage_timer.cancel(room_id)
    else:
        triage_timer.arm(room_id)
        background_tasks.add_task(TriageService.on_student_message, room_id)
    return message


@router.post("/rooms/{room_id}/read", response_model=StatusResponse)
async def mark_room_read(
    room_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    count = await ChatService.mark_room_read(db, current_user, room_id)
    return {"status": "updated", "detail": {"count": count}}


@router.delete("/messages/{message_id}", response_model=StatusResponse)
async def delete_message(
    message_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    await ChatService.delete_message(db, current_user, message_id)
    return {"status": "deleted"}


@router.post("/rooms/{room_id}/transfer", response_model=ChatRoomResponse)
async def transfer_room(
    room_id: UUID,
    request: TransferRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_staff),
) -> Any:
    return await ChatService.transfer_room(db, current_user, room_id, request.to_counselor_id, request.reason)


@router.put("/rooms/{room_id}/urgency", response_model=ChatRoomResponse)
async def set_urgency(
    room_id: UUID,
    request: UrgencyRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_staff),
) -> Any:
    return await ChatService.set_urgency(db, current_user, room_id, request.level)


@router.get("/unread", response_model=UnreadCountResponse)
async def unread_count(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return {"unread_count": await ChatService.unread_count(db, current_user)}


@router.put("/rooms/{room_id}/counseled", response_model=ChatRoomResponse)
async def set_counseled(
    room_id: UUID,
    request: CounseledRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_staff),
) -> Any:
    return await ChatService.set_counseled(db, current_user, room_id, request.counseled)


@router.get("/students/{student_id}/notes", response_model=StudentNoteResponse)
async def get_student_notes(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_staff),
) -> Any:
    note = await ChatService.get_student_notes(db, current_user, student_id)
    if note is None:
        return {"student_id": student_id, "content": ""}
    return note


@router.put("/students/{student_id}/notes", response_model=StudentNoteResponse)
async def save_student_notes(
    student_id: UUID,
    request: StudentNoteRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_staff),
) -> Any:
    return await ChatService.save_student_notes(db, current_user, student_id, request.content)
