"""
Moderation tables.

flagged_content rows are what counselors triage; pending_content holds
submissions the classifier could not decide on; content_appeals are
re-review requests against earlier moderation outcomes.
"""

import uuid
import enum
from sqlalchemy import Column, String, Boolean, Integer, DateTime, ForeignKey, Text, JSON
from sqlalchemy.dialects.postgresql import UUID

from snet.core.time_utils import get_utc_now
from snet.db.base import Base


class ContentType(str, enum.Enum):
    POST = "post"
    COMMENT = "comment"
    CHAT = "chat"
    PENDING = "pending"


class PendingStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FLAGGED = "flagged"


class AppealStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class FlaggedContent(Base):
    __tablename__ = "flagged_content"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    content_type = Column(String(20), nullable=False)
    content_id = Column(UUID(as_uuid=True), nullable=True)
    content = Column(Text, nullable=False)

    # Pass-through from the classifier
    flag_level = Column(Integer, nullable=False, index=True)
    category = Column(String(50), nullable=True)
    keywords = Column(JSON, default=list, nullable=False)
    reasoning = Column(Text, nullable=True)

    is_resolved = Column(Boolean, default=False, nullable=False, index=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)


class PendingContent(Base):
    __tablename__ = "pending_content"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    content_type = Column(String(20), nullable=False)
    post_id = Column(UUID(as_uuid=True), ForeignKey("posts.id", ondelete="CASCADE"), nullable=True)
    parent_comment_id = Column(UUID(as_uuid=True), nullable=True)
    content = Column(Text, nullable=False)
    image_url = Column(String(1024), nullable=True)
    is_anonymous = Column(Boolean, default=True, nullable=False)

    pending_reason = Column(Text, nullable=True)
    status = Column(String(20), default=PendingStatus.PENDING.value, nullable=False, index=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)


class ContentAppeal(Base):
    __tablename__ = "content_appeals"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    content_type = Column(String(20), nullable=False)
    content_id = Column(UUID(as_uuid=True), nullable=False)
    original_content = Column(Text, nullable=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    reason = Column(Text, nullable=False)

    status = Column(String(20), default=AppealStatus.PENDING.value, nullable=False, index=True)
    reviewed_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    review_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)
