import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple
import structlog
from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from snet.core.exceptions import NotFoundError
from snet.models.notification import Notification
from snet.models.user import User, STAFF_ROLES

logger = structlog.get_logger()


class NotificationService:
    """
    Writes notification rows and computes fan-out targets.
    Callers own the transaction; nothing here commits unless it is the
    whole operation (read/delete endpoints).
    """

    @staticmethod
    def create_notification(
        db: AsyncSession,
        user_id: uuid.UUID,
        type: str,
        title: str,
        message: Optional[str] = None,
        link: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            link=link,
            data=data,
        )
        db.add(notification)
        return notification

    @classmethod
    async def notify_roles(
        cls,
        db: AsyncSession,
        roles: Iterable[str],
        type: str,
        title: str,
        message: Optional[str] = None,
        link: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        exclude: Optional[uuid.UUID] = None,
    ) -> int:
        """
        One notification per active user whose role is in roles.
        The fan-out runs in a savepoint: a failure is logged and rolled back
        to that point, so the caller's transaction stays usable and the
        triggering write still lands.
        """
        roles = [str(getattr(r, "value", r)) for r in roles]
        try:
            async with db.begin_nested():
                result = await db.execute(
                    select(User.id).where(User.role.in_(roles), User.is_active.is_(True))
                )
                recipients = [row for row in result.scalars().all() if row != exclude]
                for user_id in recipients:
                    cls.create_notification(db, user_id, type, title, message, link, data)
                await db.flush()
        except SQLAlchemyError as e:
            logger.error("notification_fanout_failed", roles=roles, type=type, error=str(e))
            return 0

        logger.info("notification_fanout", roles=roles, type=type, recipients=len(recipients))
        return len(recipients)

    @classmethod
    async def notify_staff(cls, db: AsyncSession, type: str, title: str, message: Optional[str] = None,
                           link: Optional[str] = None, data: Optional[Dict[str, Any]] = None) -> int:
        return await cls.notify_roles(db, STAFF_ROLES, type, title, message, link, data)

    @staticmethod
    async def list_for_user(db: AsyncSession, user_id: uuid.UUID, limit: int = 50) -> Tuple[List[Notification], int]:
        result = await db.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        items = list(result.scalars().all())

        unread = await db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id, Notification.is_read.is_(False)
            )
        )
        return items, unread.scalar_one()

    @staticmethod
    async def mark_as_read(db: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID) -> None:
        result = await db.execute(
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(is_read=True)
        )
        if result.rowcount == 0:
            raise NotFoundError("Notification not found")
        await db.commit()

    @staticmethod
    async def mark_all_as_read(db: AsyncSession, user_id: uuid.UUID) -> int:
        result = await db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        await db.commit()
        return result.rowcount

    @staticmethod
    async def delete(db: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID) -> None:
        result = await db.execute(
            delete(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
        )
        if result.rowcount == 0:
            raise NotFoundError("Notification not found")
        await db.commit()

    @staticmethod
    async def delete_all_read(db: AsyncSession, user_id: uuid.UUID) -> int:
        result = await db.execute(
            delete(Notification).where(Notification.user_id == user_id, Notification.is_read.is_(True))
        )
        await db.commit()
        return result.rowcount
