from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import datetime

from snet.schemas.ai import FlagLevel, ModerationAction


class PostCreateRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    image_url: Optional[str] = None
    is_anonymous: bool = True


class CommentCreateRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)
    parent_comment_id: Optional[UUID] = None


class SubmissionOutcome(BaseModel):
    """What happened to a post or comment after moderation."""
    action: ModerationAction
    category: str
    flag_level: FlagLevel
    content_id: Optional[UUID] = None
    pending_id: Optional[UUID] = None
    flagged_id: Optional[UUID] = None
    title: str
    message: str
    show_chat_suggestion: bool = False
    emergency_contacts: List[Dict[str, str]] = Field(default_factory=list)

    @property
    def published(self) -> bool:
        return self.content_id is not None


class AuthorInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: Optional[str] = None
    role: str


class PostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    content: str
    image_url: Optional[str] = None
    is_anonymous: bool
    flag_level: int
    like_count: int = 0
    is_liked: bool = False
    author: Optional[AuthorInfo] = None
    created_at: datetime


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    post_id: UUID
    parent_comment_id: Optional[UUID] = None
    content: str
    flag_level: int
    like_count: int = 0
    is_liked: bool = False
    author: Optional[AuthorInfo] = None
    created_at: datetime
    replies: List["CommentResponse"] = Field(default_factory=list)


class LikeResponse(BaseModel):
    id: UUID
    like_count: int
    is_liked: bool


class StatusResponse(BaseModel):
    status: str
    detail: Optional[Any] = None
