from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from snet.schemas.ai import FlagLevel
from snet.schemas.community import AuthorInfo


class PendingItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    content_type: str
    post_id: Optional[UUID] = None
    parent_comment_id: Optional[UUID] = None
    content: str
    image_url: Optional[str] = None
    is_anonymous: bool
    pending_reason: Optional[str] = None
    status: str
    created_at: datetime


class RejectPendingRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class FlagPendingRequest(BaseModel):
    flag_level: FlagLevel = FlagLevel.IMMEDIATE
    category: str = Field(..., min_length=1, max_length=50)


class FlaggedItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    content_type: str
    content_id: Optional[UUID] = None
    content: str
    flag_level: int
    category: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    reasoning: Optional[str] = None
    is_resolved: bool
    created_at: datetime


class FlaggedGroupResponse(BaseModel):
    """All unresolved flags for one student."""
    user_id: UUID
    user: Optional[AuthorInfo] = None
    highest_flag_level: int
    latest_at: datetime
    items: List[FlaggedItemResponse]


class FlaggedCountsResponse(BaseModel):
    immediate: int
    mild: int
    total: int
