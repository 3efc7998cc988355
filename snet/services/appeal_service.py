import uuid
from typing import List, Optional

import structlog
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from snet.core.exceptions import ConflictError, InvalidStateError, NotFoundError, PermissionDeniedError
from snet.core.time_utils import get_utc_now
from snet.models.community import Comment, Post
from snet.models.moderation import AppealStatus, ContentAppeal, ContentType, PendingContent, PendingStatus
from snet.models.user import User
from snet.services.notification_service import NotificationService
from snet.services.review_service import ReviewService

logger = structlog.get_logger()


class AppealService:
    """
    Students can ask for a second look at content that moderation held back.
    One appeal per user per content item.
    """

    @staticmethod
    async def submit_appeal(
        db: AsyncSession,
        user: User,
        content_type: str,
        content_id: uuid.UUID,
        reason: str,
        original_content: Optional[str] = None,
    ) -> ContentAppeal:
        await AppealService._check_owner(db, user, content_type, content_id)

        existing = await db.execute(
            select(ContentAppeal.id).where(
                ContentAppeal.user_id == user.id,
                ContentAppeal.content_type == content_type,
                ContentAppeal.content_id == content_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("Bạn đã gửi kháng nghị cho nội dung này rồi")

        appeal = ContentAppeal(
            content_type=content_type,
            content_id=content_id,
            original_content=original_content,
            user_id=user.id,
            reason=reason.strip(),
            status=AppealStatus.PENDING.value,
        )
        db.add(appeal)
        await db.flush()

        await NotificationService.notify_staff(
            db,
            "content_appeal",
            "Kháng nghị mới",
            f"Học sinh đã gửi kháng nghị: {reason.strip()[:100]}",
            link="/counselor/appeals",
            data={"appeal_id": str(appeal.id), "content_type": content_type},
        )
        await db.commit()
        logger.info("appeal_submitted", appeal_id=str(appeal.id), user_id=str(user.id), content_type=content_type)
        return appeal

    @staticmethod
    async def _check_owner(db: AsyncSession, user: User, content_type: str, content_id: uuid.UUID) -> None:
        # Rejected posts and comments never got a row, so only existing rows are checked
        if content_type == ContentType.PENDING.value:
            item = await db.get(PendingContent, content_id)
            if not item:
                raise NotFoundError("Content not found")
            owner_id = item.user_id
        elif content_type in (ContentType.POST.value, ContentType.COMMENT.value):
            model = Post if content_type == ContentType.POST.value else Comment
            row = await db.get(model, content_id)
            if not row:
                return
            owner_id = row.author_id
        else:
            return
        if owner_id != user.id:
            raise PermissionDeniedError("Bạn chỉ có thể kháng nghị nội dung của chính mình")

    @staticmethod
    async def review_appeal(
        db: AsyncSession,
        reviewer: User,
        appeal_id: uuid.UUID,
        approved: bool,
        notes: Optional[str] = None,
    ) -> ContentAppeal:
        if not reviewer.is_staff:
            raise PermissionDeniedError("Only counselors can review appeals")

        appeal = await db.get(ContentAppeal, appeal_id)
        if not appeal:
            raise NotFoundError("Appeal not found")
        if appeal.status != AppealStatus.PENDING.value:
            raise InvalidStateError(f"Appeal was already reviewed ({appeal.status})")

        appeal.status = (AppealStatus.APPROVED if approved else AppealStatus.REJECTED).value
        appeal.reviewed_by = reviewer.id
        appeal.reviewed_at = get_utc_now()
        appeal.review_notes = notes

        # An approved appeal against held content publishes it
        if approved and appeal.content_type == ContentType.PENDING.value:
            item = await db.get(PendingContent, appeal.content_id)
            if item and item.user_id == appeal.user_id and item.status == PendingStatus.PENDING.value:
                await ReviewService.publish_pending(db, item)

        if approved:
            title = "Kháng nghị được chấp nhận"
            message = "Kháng nghị của bạn đã được chấp nhận."
        else:
            title = "Kháng nghị bị từ chối"
            message = "Kháng nghị của bạn không được chấp nhận."
            if notes:
                message += f" Lý do: {notes}"

        NotificationService.create_notification(
            db,
            appeal.user_id,
            "appeal_decision",
            title,
            message,
            data={"appeal_id": str(appeal.id), "approved": approved},
        )
        await db.commit()
        logger.info("appeal_reviewed", appeal_id=str(appeal.id), approved=approved, reviewer=str(reviewer.id))
        return appeal

    @staticmethod
    async def list_appeals(db: AsyncSession, user: User) -> List[ContentAppeal]:
        query = select(ContentAppeal).order_by(ContentAppeal.created_at.desc())
        if not user.is_staff:
            query = query.where(ContentAppeal.user_id == user.id)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def pending_count(db: AsyncSession) -> int:
        result = await db.execute(
            select(func.count(ContentAppeal.id)).where(ContentAppeal.status == AppealStatus.PENDING.value)
        )
        return result.scalar_one()
