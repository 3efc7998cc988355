"""
Counselor chat tables.

A student owns at most one room. A room with no counselor_id is public and
visible to every counselor; transfers pin it to a specific counselor.
Messages with sender_id NULL and is_system set are AI/system messages.
Student notes are private to staff, one shared note per student.
"""

import uuid
import enum
from sqlalchemy import Column, String, Boolean, Integer, DateTime, ForeignKey, Text, JSON
from sqlalchemy.dialects.postgresql import UUID

from snet.core.time_utils import get_utc_now
from snet.db.base import Base


class UrgencyLevel(int, enum.Enum):
    NORMAL = 0
    ATTENTION = 1
    URGENT = 2
    CRITICAL = 3


class RoomStatus(str, enum.Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class ChatRoom(Base):
    __tablename__ = "chat_rooms"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    counselor_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)

    status = Column(String(20), default=RoomStatus.ACTIVE.value, nullable=False, index=True)
    urgency_level = Column(Integer, default=UrgencyLevel.NORMAL.value, nullable=False)

    ai_triage_complete = Column(Boolean, default=False, nullable=False)
    ai_assessment = Column(JSON, nullable=True)
    counselor_first_reply_at = Column(DateTime(timezone=True), nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)

    # Staff mark a room once the student has actually been counseled
    is_counseled = Column(Boolean, default=False, nullable=False)
    counseled_at = Column(DateTime(timezone=True), nullable=True)
    counseled_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=get_utc_now, onupdate=get_utc_now, nullable=False)


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    chat_room_id = Column(UUID(as_uuid=True), ForeignKey("chat_rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    content = Column(Text, nullable=False)
    is_system = Column(Boolean, default=False, nullable=False)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, default=dict)
    read_by = Column(JSON, default=list, nullable=False)

    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False, index=True)

    @property
    def is_ai(self) -> bool:
        return bool(self.is_system and (self.meta or {}).get("type") == "ai_triage")


class ChatTransfer(Base):
    __tablename__ = "chat_transfers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    chat_room_id = Column(UUID(as_uuid=True), ForeignKey("chat_rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    from_counselor_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    to_counselor_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    student_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)


class StudentNote(Base):
    __tablename__ = "student_notes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    content = Column(Text, default="", nullable=False)
    updated_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=get_utc_now, onupdate=get_utc_now, nullable=False)
