"""
Student <-> counselor chat.

Every student has at most one room. Rooms start public (no counselor_id),
so any counselor can pick them up; a transfer pins the room to one counselor.
AI triage messages are written by TriageService, not here.
"""

import uuid
from typing import List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from snet.core.exceptions import ConflictError, InvalidStateError, NotFoundError, PermissionDeniedError
from snet.core.messages import URGENCY_LABELS
from snet.core.time_utils import ensure_utc, get_utc_now
from snet.models.chat import ChatMessage, ChatRoom, ChatTransfer, RoomStatus, StudentNote, UrgencyLevel
from snet.models.user import User, UserRole
from snet.services.notification_service import NotificationService

logger = structlog.get_logger()


class ChatService:

    # Rooms

    @staticmethod
    async def get_student_room(db: AsyncSession, student: User) -> Optional[ChatRoom]:
        result = await db.execute(select(ChatRoom).where(ChatRoom.student_id == student.id))
        return result.scalars().first()

    @classmethod
    async def create_room(cls, db: AsyncSession, student: User) -> ChatRoom:
        if student.role != UserRole.STUDENT.value:
            raise PermissionDeniedError("Only students can open a chat room")
        if await cls.get_student_room(db, student):
            raise ConflictError("Bạn đã có phòng chat")

        room = ChatRoom(
            student_id=student.id,
            counselor_id=None,
            status=RoomStatus.ACTIVE.value,
            urgency_level=UrgencyLevel.NORMAL.value,
            ai_triage_complete=False,
        )
        db.add(room)
        await db.commit()
        logger.info("chat_room_created", room_id=str(room.id), student_id=str(student.id))
        return room

    @staticmethod
    def can_access(user: User, room: ChatRoom) -> bool:
        if user.role == UserRole.ADMIN.value:
            return True
        if user.role == UserRole.COUNSELOR.value:
            return room.counselor_id is None or room.counselor_id == user.id
        return room.student_id == user.id

    @classmethod
    async def get_room(cls, db: AsyncSession, user: User, room_id: uuid.UUID) -> ChatRoom:
        room = await db.get(ChatRoom, room_id)
        if not room:
            raise NotFoundError("Chat room not found")
        if not cls.can_access(user, room):
            raise PermissionDeniedError("You do not have access to this chat room")
        return room

    @staticmethod
    async def delete_room(db: AsyncSession, user: User, room_id: uuid.UUID) -> None:
        room = await db.get(ChatRoom, room_id)
        if not room:
            raise NotFoundError("Chat room not found")
        if room.student_id != user.id and user.role != UserRole.ADMIN.value:
            raise PermissionDeniedError("Only the student or an admin can delete this room")

        messages = await db.execute(select(ChatMessage).where(ChatMessage.chat_room_id == room.id))
        for message in messages.scalars().all():
            await db.delete(message)
        transfers = await db.execute(select(ChatTransfer).where(ChatTransfer.chat_room_id == room.id))
        for transfer in transfers.scalars().all():
            await db.delete(transfer)
        await db.delete(room)
        await db.commit()
        logger.info("chat_room_deleted", room_id=str(room_id), by=str(user.id))

    @classmethod
    async def list_rooms_for_staff(cls, db: AsyncSession, user: User) -> List[ChatRoom]:
        """Active rooms visible to this staff member, most urgent first."""
        if not user.is_staff:
            raise PermissionDeniedError("Counselor access required")

        result = await db.execute(select(ChatRoom).where(ChatRoom.status == RoomStatus.ACTIVE.value))
        rooms = [r for r in result.scalars().all() if cls.can_access(user, r)]

        def last_activity(room: ChatRoom) -> float:
            stamp = room.last_message_at or room.created_at
            return ensure_utc(stamp).timestamp()

        return sorted(rooms, key=lambda r: (r.urgency_level, last_activity(r)), reverse=True)

    # Messages

    @classmethod
    async def list_messages(cls, db: AsyncSession, user: User, room_id: uuid.UUID, limit: int = 200) -> List[ChatMessage]:
        await cls.get_room(db, user, room_id)
        result = await db.execute(
            select(ChatMessage)
            .where(ChatMessage.chat_room_id == room_id)
            .order_by(ChatMessage.created_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    @classmethod
    async def send_message(cls, db: AsyncSession, user: User, room_id: uuid.UUID, content: str) -> ChatMessage:
        room = await cls.get_room(db, user, room_id)
        if room.status != RoomStatus.ACTIVE.value:
            raise InvalidStateError("Chat room is closed")

        text = content.strip()
        if not text:
            raise InvalidStateError("Message must not be empty")

        now = get_utc_now()
        message = ChatMessage(
            chat_room_id=room.id,
            sender_id=user.id,
            content=text,
            is_system=False,
            meta={},
            read_by=[str(user.id)],
            created_at=now,
        )
        db.add(message)
        room.last_message_at = now

        if user.is_staff:
            if room.counselor_first_reply_at is None:
                room.counselor_first_reply_at = now
            NotificationService.create_notification(
                db,
                room.student_id,
                "counselor_replied",
                "💬 Tư vấn viên đã trả lời",
                f"{user.full_name or 'Tư vấn viên'} đã trả lời tin nhắn của bạn",
                link="/chat",
                data={"chat_room_id": str(room.id)},
            )
        elif room.counselor_id:
            NotificationService.create_notification(
                db,
                room.counselor_id,
                "new_message",
                "💬 Tin nhắn mới từ học sinh",
                f"{user.full_name or 'Học sinh'} đã gửi tin nhắn mới",
                link="/chat",
                data={"chat_room_id": str(room.id)},
            )
        else:
            await NotificationService.notify_staff(
                db,
                "new_message",
                "💬 Tin nhắn mới từ học sinh",
                f"{user.full_name or 'Học sinh'} đã gửi tin nhắn mới",
                link="/chat",
                data={"chat_room_id": str(room.id)},
            )

        await db.commit()
        logger.info("chat_message_sent", room_id=str(room.id), sender=str(user.id), staff=user.is_staff)
        return message

    @staticmethod
    async def delete_message(db: AsyncSession, user: User, message_id: uuid.UUID) -> None:
        message = await db.get(ChatMessage, message_id)
        if not message:
            raise NotFoundError("Message not found")
        if message.sender_id != user.id:
            raise PermissionDeniedError("You can only delete your own messages")
        await db.delete(message)
        await db.commit()

    @classmethod
    async def mark_room_read(cls, db: AsyncSession, user: User, room_id: uuid.UUID) -> int:
        await cls.get_room(db, user, room_id)
        user_key = str(user.id)

        result = await db.execute(select(ChatMessage).where(ChatMessage.chat_room_id == room_id))
        marked = 0
        for message in result.scalars().all():
            read_by = message.read_by or []
            if message.sender_id == user.id or user_key in read_by:
                continue
            # Reassign so the JSON column is seen as changed
            message.read_by = read_by + [user_key]
            marked += 1

        if marked:
            await db.commit()
        return marked

    @classmethod
    async def unread_count(cls, db: AsyncSession, user: User) -> int:
        if user.is_staff:
            rooms = await cls.list_rooms_for_staff(db, user)
        else:
            room = await cls.get_student_room(db, user)
            rooms = [room] if room else []
        if not rooms:
            return 0

        user_key = str(user.id)
        result = await db.execute(
            select(ChatMessage).where(ChatMessage.chat_room_id.in_([r.id for r in rooms]))
        )
        return sum(
            1 for m in result.scalars().all()
            if m.sender_id != user.id and user_key not in (m.read_by or [])
        )

    # Staff actions

    @classmethod
    async def transfer_room(cls, db: AsyncSession, counselor: User, room_id: uuid.UUID,
                            to_counselor_id: uuid.UUID, reason: Optional[str] = None) -> ChatRoom:
        if not counselor.is_staff:
            raise PermissionDeniedError("Counselor access required")
        room = await cls.get_room(db, counselor, room_id)

        target = await db.get(User, to_counselor_id)
        if not target or not target.is_staff or not target.is_active:
            raise NotFoundError("Target counselor not found")
        if room.counselor_id == target.id:
            raise InvalidStateError("Chat is already assigned to this counselor")

        student = await db.get(User, room.student_id)
        student_name = (student.full_name if student else None) or "Học sinh"
        reason_suffix = f" Lý do: {reason}" if reason else ""

        db.add(ChatTransfer(
            chat_room_id=room.id,
            from_counselor_id=counselor.id,
            to_counselor_id=target.id,
            student_id=room.student_id,
            reason=reason,
        ))
        room.counselor_id = target.id

        NotificationService.create_notification(
            db,
            target.id,
            "chat_transfer",
            "🔄 Chat được chuyển giao cho bạn",
            f"{counselor.full_name or 'Tư vấn viên khác'} đã chuyển chat với {student_name} cho bạn.{reason_suffix}",
            link="/chat",
            data={"chat_room_id": str(room.id), "from_counselor_id": str(counselor.id)},
        )
        NotificationService.create_notification(
            db,
            room.student_id,
            "chat_transfer",
            "👋 Tư vấn viên mới sẽ hỗ trợ bạn",
            "Chat của bạn đã được chuyển sang tư vấn viên khác. Họ sẽ tiếp tục hỗ trợ bạn.",
            link="/chat",
            data={"chat_room_id": str(room.id)},
        )
        db.add(ChatMessage(
            chat_room_id=room.id,
            sender_id=counselor.id,
            content=f"📋 Chat đã được chuyển giao sang tư vấn viên khác.{reason_suffix}",
            is_system=True,
            meta={"type": "transfer"},
            read_by=[str(counselor.id)],
        ))
        await db.commit()
        logger.info("chat_transferred", room_id=str(room.id), to=str(target.id), by=str(counselor.id))
        return room

    @classmethod
    async def set_urgency(cls, db: AsyncSession, user: User, room_id: uuid.UUID, level: int) -> ChatRoom:
        if not user.is_staff:
            raise PermissionDeniedError("Counselor access required")
        if level not in URGENCY_LABELS:
            raise InvalidStateError("Invalid urgency level")
        room = await cls.get_room(db, user, room_id)
        room.urgency_level = level

        if level == UrgencyLevel.CRITICAL:
            await cls.notify_admins_critical(db, room)

        await db.commit()
        logger.info("chat_urgency_set", room_id=str(room.id), level=level, by=str(user.id))
        return room

    @classmethod
    async def set_counseled(cls, db: AsyncSession, user: User, room_id: uuid.UUID, counseled: bool) -> ChatRoom:
        if not user.is_staff:
            raise PermissionDeniedError("Counselor access required")
        room = await cls.get_room(db, user, room_id)
        room.is_counseled = counseled
        room.counseled_at = get_utc_now() if counseled else None
        room.counseled_by = user.id if counseled else None
        await db.commit()
        logger.info("chat_counseled_set", room_id=str(room.id), counseled=counseled, by=str(user.id))
        return room

    # Student notes

    @staticmethod
    async def _note_target(db: AsyncSession, user: User, student_id: uuid.UUID) -> User:
        if not user.is_staff:
            raise PermissionDeniedError("Counselor access required")
        student = await db.get(User, student_id)
        if not student or student.role != UserRole.STUDENT.value:
            raise NotFoundError("Student not found")
        return student

    @classmethod
    async def get_student_notes(cls, db: AsyncSession, user: User, student_id: uuid.UUID) -> Optional[StudentNote]:
        await cls._note_target(db, user, student_id)
        result = await db.execute(select(StudentNote).where(StudentNote.student_id == student_id))
        return result.scalars().first()

    @staticmethod
    def _write_note(note: StudentNote, staff_id: uuid.UUID, content: str) -> None:
        note.content = content
        note.updated_by = staff_id
        note.updated_at = get_utc_now()

    @classmethod
    async def save_student_notes(cls, db: AsyncSession, user: User, student_id: uuid.UUID, content: str) -> StudentNote:
        """Upsert the shared staff note for a student. Last writer wins."""
        staff_id = user.id
        note = await cls.get_student_notes(db, user, student_id)
        if note is None:
            note = StudentNote(student_id=student_id)
            db.add(note)
        cls._write_note(note, staff_id, content)
        try:
            await db.commit()
        except IntegrityError:
            # Another counselor created the note first
            await db.rollback()
            result = await db.execute(select(StudentNote).where(StudentNote.student_id == student_id))
            note = result.scalars().one()
            cls._write_note(note, staff_id, content)
            await db.commit()
        logger.info("student_notes_saved", student_id=str(student_id), by=str(staff_id))
        return note

    @staticmethod
    async def notify_admins_critical(db: AsyncSession, room: ChatRoom) -> int:
        student = await db.get(User, room.student_id)
        student_name = (student.full_name if student else None) or "Học sinh"
        return await NotificationService.notify_roles(
            db,
            [UserRole.ADMIN],
            "urgent_case",
            "🔴 Case RẤT KHẨN CẤP",
            f"Chat với {student_name} đã được đánh dấu là rất khẩn cấp. Cần can thiệp ngay!",
            link="/chat",
            data={"chat_room_id": str(room.id), "urgency_level": int(UrgencyLevel.CRITICAL)},
        )
