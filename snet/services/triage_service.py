"""
AI first response in student chat rooms.

When a student opens a room, a TriageTimer is armed for the room. If no
counselor or admin has written by the time it fires, the assistant posts an
introduction and from then on answers each student message with a short
contextual reply. After TRIAGE_QUESTION_COUNT student answers the assistant
rates urgency once and writes it onto the room. The first staff message
stops all of this for good.

The timer and the per-room locks live on the event loop of this process;
nothing about them is persisted except the messages they guard. Running
more than one worker process needs a shared lock instead.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import Callable, Dict, List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from snet.core.config import settings
from snet.core.time_utils import get_utc_now
from snet.db.session import AsyncSessionLocal
from snet.models.chat import ChatMessage, ChatRoom, UrgencyLevel
from snet.models.user import User, STAFF_ROLES
from snet.schemas.ai import TriageTurn
from snet.services.ai_service import GeminiService
from snet.services.chat_service import ChatService

logger = structlog.get_logger()

AI_META_TYPE = "ai_triage"

INTRO_MESSAGE = (
    "Xin chào! 👋 Mình là trợ lý ảo của S-Net. Trong khi chờ tư vấn viên, mình muốn hỏi bạn "
    "một vài câu để hiểu rõ hơn về tình trạng của bạn.\n\n"
    "Bạn có chuyện gì cần tư vấn hôm nay không? 💭"
)

WAIT_MESSAGE = (
    "Cảm ơn bạn đã chia sẻ. Tư vấn viên sẽ sớm liên hệ với bạn. Trong lúc chờ đợi, "
    "hãy nhớ rằng bạn không đơn độc nhé! ❤️"
)


def urgent_notice(level: int) -> str:
    label = "rất khẩn cấp" if level == UrgencyLevel.CRITICAL else "khẩn cấp"
    return (
        f"⚠️ Dựa trên những gì bạn chia sẻ, mình đã đánh dấu cuộc trò chuyện này là {label} "
        "để tư vấn viên ưu tiên hỗ trợ bạn."
    )


class RoomLocks:
    """
    One asyncio.Lock per chat room, dropped again once nobody holds or
    waits for it.
    """

    def __init__(self):
        self._locks: Dict[uuid.UUID, asyncio.Lock] = {}
        self._users: Dict[uuid.UUID, int] = {}

    @asynccontextmanager
    async def hold(self, room_id: uuid.UUID):
        lock = self._locks.setdefault(room_id, asyncio.Lock())
        self._users[room_id] = self._users.get(room_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[room_id] -= 1
            if not self._users[room_id]:
                del self._users[room_id]
                del self._locks[room_id]

    def __len__(self) -> int:
        return len(self._locks)


room_locks = RoomLocks()


class TriageService:

    @staticmethod
    async def staff_has_replied(db: AsyncSession, room: ChatRoom) -> bool:
        if room.counselor_first_reply_at is not None:
            return True
        result = await db.execute(
            select(ChatMessage.id)
            .join(User, User.id == ChatMessage.sender_id)
            .where(ChatMessage.chat_room_id == room.id, User.role.in_(STAFF_ROLES))
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def _room_messages(db: AsyncSession, room_id: uuid.UUID) -> List[ChatMessage]:
        result = await db.execute(
            select(ChatMessage)
            .where(ChatMessage.chat_room_id == room_id)
            .order_by(ChatMessage.created_at.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    def _add_ai_message(db: AsyncSession, room: ChatRoom, content: str, **meta) -> ChatMessage:
        now = get_utc_now()
        message = ChatMessage(
            chat_room_id=room.id,
            sender_id=None,
            content=content,
            is_system=True,
            meta={"type": AI_META_TYPE, **meta},
            read_by=[],
            created_at=now,
        )
        db.add(message)
        room.last_message_at = now
        return message

    @staticmethod
    def _intro_index(messages: List[ChatMessage]) -> Optional[int]:
        for i, message in enumerate(messages):
            if message.is_ai and (message.meta or {}).get("intro"):
                return i
        return None

    @classmethod
    async def introduce(cls, db: AsyncSession, room_id: uuid.UUID) -> Optional[ChatMessage]:
        """Post the introduction unless staff got there first or it was already posted."""
        room = await db.get(ChatRoom, room_id)
        if room is None:
            return None
        if await cls.staff_has_replied(db, room):
            logger.info("triage_skipped_staff_present", room_id=str(room_id))
            return None
        if cls._intro_index(await cls._room_messages(db, room_id)) is not None:
            return None

        message = cls._add_ai_message(db, room, INTRO_MESSAGE, intro=True)
        await db.commit()
        logger.info("triage_intro_sent", room_id=str(room_id))
        return message

    @classmethod
    async def respond(cls, db: AsyncSession, room_id: uuid.UUID) -> List[ChatMessage]:
        """
        Answer the latest student message in an AI-active room.
        Returns the AI messages written (empty when the AI should stay quiet).
        """
        room = await db.get(ChatRoom, room_id)
        if room is None or await cls.staff_has_replied(db, room):
            return []

        messages = await cls._room_messages(db, room_id)
        intro_at = cls._intro_index(messages)
        if intro_at is None:
            return []

        after_intro = messages[intro_at + 1:]
        student_texts = [m.content for m in after_intro if m.sender_id == room.student_id]
        if not after_intro or after_intro[-1].sender_id != room.student_id:
            return []

        assess = not room.ai_triage_complete and len(student_texts) >= settings.TRIAGE_QUESTION_COUNT
        assessment = None
        reply = None
        if assess:
            assessment = await GeminiService.analyze_urgency(student_texts)
        else:
            history = [
                TriageTurn(role="student" if m.sender_id == room.student_id else "assistant", content=m.content)
                for m in messages[-settings.TRIAGE_HISTORY_LIMIT:]
                if m.sender_id == room.student_id or m.is_ai
            ]
            reply = await GeminiService.generate_triage_reply(history)

        # A counselor may have joined while the model was thinking
        await db.refresh(room)
        if await cls.staff_has_replied(db, room):
            logger.info("triage_reply_dropped_staff_present", room_id=str(room_id))
            return []

        written = []
        if assessment is not None:
            room.urgency_level = max(room.urgency_level or 0, assessment.urgency_level)
            room.ai_triage_complete = True
            room.ai_assessment = {
                "urgency_level": assessment.urgency_level,
                "reasoning": assessment.reasoning,
                "assessed_at": get_utc_now().isoformat(),
            }
            written.append(cls._add_ai_message(db, room, WAIT_MESSAGE, assessment=True))
            if assessment.urgency_level >= UrgencyLevel.URGENT:
                written.append(cls._add_ai_message(db, room, urgent_notice(assessment.urgency_level)))
            if assessment.urgency_level == UrgencyLevel.CRITICAL:
                await ChatService.notify_admins_critical(db, room)
            logger.info("triage_assessed", room_id=str(room_id), urgency_level=assessment.urgency_level)
        else:
            written.append(cls._add_ai_message(db, room, reply or WAIT_MESSAGE, fallback=reply is None))

        await db.commit()
        return written

    @classmethod
    async def on_student_message(cls, room_id: uuid.UUID, session_factory: Optional[Callable] = None) -> None:
        """
        Background task run after a student message is stored. Uses its own
        session because the request's session is closed by then. Replies for
        one room run one at a time so a burst of messages gets one answer.
        """
        factory = session_factory or AsyncSessionLocal
        try:
            async with room_locks.hold(room_id), factory() as db:
                await cls.respond(db, room_id)
        except Exception as e:
            logger.error("triage_reply_failed", room_id=str(room_id), error=str(e))


class TriageTimer:
    """
    One pending timer per chat room. arm() is a no-op while a timer is
    pending; a timer firing after the introduction changes nothing because
    introduce() posts it once.
    """

    def __init__(self, session_factory: Optional[Callable] = None, delay: Optional[float] = None):
        self._session_factory = session_factory
        self._delay = delay
        self._tasks: Dict[uuid.UUID, asyncio.Task] = {}

    @property
    def delay(self) -> float:
        return settings.TRIAGE_DELAY_SECONDS if self._delay is None else self._delay

    def arm(self, room_id: uuid.UUID) -> bool:
        task = self._tasks.get(room_id)
        if task is not None and not task.done():
            return False
        self._tasks[room_id] = asyncio.create_task(self._run(room_id))
        logger.debug("triage_timer_armed", room_id=str(room_id), delay=self.delay)
        return True

    def cancel(self, room_id: uuid.UUID) -> None:
        task = self._tasks.pop(room_id, None)
        if task is not None and not task.done():
            task.cancel()
            logger.info("triage_timer_cancelled", room_id=str(room_id))

    def forget(self, room_id: uuid.UUID) -> None:
        """Drop all state for a room (deleted or replaced)."""
        self.cancel(room_id)

    def cancel_all(self) -> None:
        for room_id in list(self._tasks):
            self.cancel(room_id)

    def pending(self, room_id: uuid.UUID) -> Optional[asyncio.Task]:
        return self._tasks.get(room_id)

    async def _run(self, room_id: uuid.UUID) -> None:
        try:
            await asyncio.sleep(self.delay)
            factory = self._session_factory or AsyncSessionLocal
            async with room_locks.hold(room_id), factory() as db:
                await TriageService.introduce(db, room_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("triage_timer_failed", room_id=str(room_id), error=str(e))
        finally:
            if self._tasks.get(room_id) is asyncio.current_task():
                del self._tasks[room_id]


triage_timer = TriageTimer()
