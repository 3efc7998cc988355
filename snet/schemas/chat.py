from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import datetime


class ChatRoomResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    counselor_id: Optional[UUID] = None
    status: str
    urgency_level: int
    ai_triage_complete: bool
    ai_assessment: Optional[Dict[str, Any]] = None
    counselor_first_reply_at: Optional[datetime] = None
    last_message_at: Optional[datetime] = None
    is_counseled: bool = False
    counseled_at: Optional[datetime] = None
    counseled_by: Optional[UUID] = None
    created_at: datetime


class ChatMessageRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=4000)


class ChatMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    chat_room_id: UUID
    sender_id: Optional[UUID] = None
    content: str
    is_system: bool
    is_ai: bool = False
    meta: Optional[Dict[str, Any]] = Field(None, serialization_alias="metadata")
    read_by: List[str] = Field(default_factory=list)
    created_at: datetime


class TransferRequest(BaseModel):
    to_counselor_id: UUID
    reason: Optional[str] = Field(None, max_length=1000)


class UrgencyRequest(BaseModel):
    level: int


class CounseledRequest(BaseModel):
    counseled: bool = True


class StudentNoteRequest(BaseModel):
    content: str = Field("", max_length=10000)


class StudentNoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    student_id: UUID
    content: str = ""
    updated_by: Optional[UUID] = None
    updated_at: Optional[datetime] = None


class UnreadCountResponse(BaseModel):
    unread_count: int
