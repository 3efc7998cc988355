from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from uuid import UUID
from datetime import datetime

from snet.models.moderation import ContentType


class AppealCreateRequest(BaseModel):
    content_type: ContentType
    content_id: UUID
    reason: str = Field(..., min_length=1, max_length=2000)
    original_content: Optional[str] = None


class AppealReviewRequest(BaseModel):
    approved: bool
    notes: Optional[str] = Field(None, max_length=2000)


class AppealResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    content_type: str
    content_id: UUID
    original_content: Optional[str] = None
    user_id: UUID
    reason: str
    status: str
    reviewed_by: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    created_at: datetime
