"""
Counselor review queues: content held as PENDING by moderation, and
flagged content waiting to be looked at.
"""

import uuid
from typing import Any, Dict, List, Optional, Union

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from snet.core.exceptions import InvalidStateError, NotFoundError
from snet.core.time_utils import ensure_utc, get_utc_now
from snet.models.community import Comment, Post
from snet.models.moderation import ContentType, FlaggedContent, PendingContent, PendingStatus
from snet.models.user import User
from snet.schemas.ai import FlagLevel
from snet.services.notification_service import NotificationService

logger = structlog.get_logger()


class ReviewService:

    # Pending queue

    @staticmethod
    async def list_pending(db: AsyncSession) -> List[PendingContent]:
        result = await db.execute(
            select(PendingContent)
            .where(PendingContent.status == PendingStatus.PENDING.value)
            .order_by(PendingContent.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def _get_pending(db: AsyncSession, item_id: uuid.UUID) -> PendingContent:
        item = await db.get(PendingContent, item_id)
        if not item:
            raise NotFoundError("Pending item not found")
        if item.status != PendingStatus.PENDING.value:
            raise InvalidStateError(f"Item was already reviewed ({item.status})")
        return item

    @staticmethod
    async def publish_pending(db: AsyncSession, item: PendingContent) -> Union[Post, Comment]:
        """
        Insert the held text as a live post or comment and mark the item
        approved. Does not commit.
        """
        if item.content_type == ContentType.COMMENT.value:
            if not item.post_id or not await db.get(Post, item.post_id):
                raise NotFoundError("The post this comment belongs to no longer exists")
            row: Union[Post, Comment] = Comment(
                post_id=item.post_id,
                author_id=item.user_id,
                parent_comment_id=item.parent_comment_id,
                content=item.content,
                flag_level=int(FlagLevel.NORMAL),
            )
        else:
            row = Post(
                author_id=item.user_id,
                content=item.content,
                image_url=item.image_url,
                is_anonymous=item.is_anonymous,
                flag_level=int(FlagLevel.NORMAL),
            )
        db.add(row)

        item.status = PendingStatus.APPROVED.value
        item.reviewed_at = get_utc_now()
        await db.flush()
        return row

    @classmethod
    async def approve(cls, db: AsyncSession, item_id: uuid.UUID, reviewer: User) -> Union[Post, Comment]:
        item = await cls._get_pending(db, item_id)
        row = await cls.publish_pending(db, item)

        NotificationService.create_notification(
            db,
            item.user_id,
            "content_approved",
            "Bài viết đã được duyệt",
            "Nội dung bạn gửi đã được tư vấn viên duyệt và đăng lên cộng đồng.",
            link="/community",
            data={"pending_id": str(item.id), "content_id": str(row.id)},
        )
        await db.commit()
        logger.info("pending_approved", item_id=str(item.id), reviewer=str(reviewer.id))
        return row

    @classmethod
    async def reject(cls, db: AsyncSession, item_id: uuid.UUID, reviewer: User,
                     reason: Optional[str] = None) -> PendingContent:
        item = await cls._get_pending(db, item_id)
        item.status = PendingStatus.REJECTED.value
        item.reviewed_at = get_utc_now()
        item.rejection_reason = reason

        message = "Nội dung bạn gửi không được duyệt."
        if reason:
            message += f" Lý do: {reason}"
        NotificationService.create_notification(
            db,
            item.user_id,
            "content_rejected",
            "Bài viết không được duyệt",
            message,
            data={"pending_id": str(item.id)},
        )
        await db.commit()
        logger.info("pending_rejected", item_id=str(item.id), reviewer=str(reviewer.id))
        return item

    @classmethod
    async def flag_and_reject(cls, db: AsyncSession, item_id: uuid.UUID, reviewer: User,
                              flag_level: FlagLevel, category: str) -> FlaggedContent:
        item = await cls._get_pending(db, item_id)
        flagged = FlaggedContent(
            user_id=item.user_id,
            content_type=ContentType.PENDING.value,
            content_id=item.id,
            content=item.content,
            flag_level=int(flag_level),
            category=category,
            keywords=[],
            reasoning="Manually flagged during pending review",
            is_resolved=False,
        )
        db.add(flagged)
        item.status = PendingStatus.FLAGGED.value
        item.reviewed_at = get_utc_now()
        await db.commit()
        logger.info("pending_flagged", item_id=str(item.id), reviewer=str(reviewer.id), flag_level=int(flag_level))
        return flagged

    # Flagged queue

    @staticmethod
    async def list_flagged_grouped(db: AsyncSession) -> List[Dict[str, Any]]:
        """
        Unresolved flagged items grouped by author, most severe group first.
        """
        result = await db.execute(
            select(FlaggedContent).where(FlaggedContent.is_resolved.is_(False))
        )
        items = result.scalars().all()

        user_ids = {item.user_id for item in items}
        users: Dict[uuid.UUID, User] = {}
        if user_ids:
            rows = await db.execute(select(User).where(User.id.in_(list(user_ids))))
            users = {u.id: u for u in rows.scalars().all()}

        groups: Dict[uuid.UUID, Dict[str, Any]] = {}
        for item in items:
            group = groups.setdefault(item.user_id, {
                "user_id": item.user_id,
                "user": users.get(item.user_id),
                "highest_flag_level": 0,
                "items": [],
            })
            group["items"].append(item)
            group["highest_flag_level"] = max(group["highest_flag_level"], item.flag_level)

        def newest(entry) -> float:
            return ensure_utc(entry.created_at).timestamp()

        for group in groups.values():
            group["items"].sort(key=lambda i: (i.flag_level, newest(i)), reverse=True)
            group["latest_at"] = max((i.created_at for i in group["items"]), key=ensure_utc)

        return sorted(
            groups.values(),
            key=lambda g: (g["highest_flag_level"], ensure_utc(g["latest_at"]).timestamp()),
            reverse=True,
        )

    @classmethod
    async def counts(cls, db: AsyncSession) -> Dict[str, int]:
        groups = await cls.list_flagged_grouped(db)
        return {
            "immediate": sum(1 for g in groups if g["highest_flag_level"] == FlagLevel.IMMEDIATE),
            "mild": sum(1 for g in groups if g["highest_flag_level"] == FlagLevel.MILD),
            "total": len(groups),
        }

    @staticmethod
    async def resolve(db: AsyncSession, item_id: uuid.UUID, reviewer: User) -> None:
        result = await db.execute(
            update(FlaggedContent)
            .where(FlaggedContent.id == item_id)
            .values(is_resolved=True, resolved_at=get_utc_now())
        )
        if result.rowcount == 0:
            raise NotFoundError("Flagged item not found")
        await db.commit()
        logger.info("flagged_resolved", item_id=str(item_id), reviewer=str(reviewer.id))

    @staticmethod
    async def resolve_all_for_user(db: AsyncSession, user_id: uuid.UUID, reviewer: User) -> int:
        result = await db.execute(
            update(FlaggedContent)
            .where(FlaggedContent.user_id == user_id, FlaggedContent.is_resolved.is_(False))
            .values(is_resolved=True, resolved_at=get_utc_now())
        )
        await db.commit()
        logger.info("flagged_resolved_for_user", user_id=str(user_id), count=result.rowcount, reviewer=str(reviewer.id))
        return result.rowcount
