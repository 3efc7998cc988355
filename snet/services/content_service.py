"""
Community posts and comments, with moderation applied on the way in.

Every submission goes through ModerationService first; the resulting action
decides which tables are written:

    ALLOW      -> content row
    FLAG_MILD  -> content row + flagged_content row pointing at it
    REJECT     -> flagged_content row only, staff notified
    BLOCK      -> nothing
    PENDING    -> pending_content row, waits for a counselor
"""

import uuid
from typing import Any, Callable, Dict, List, Optional, Type, Union

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from snet.core.exceptions import InvalidStateError, NotFoundError, PermissionDeniedError
from snet.core.messages import category_label, get_moderation_message
from snet.models.community import Post, Comment
from snet.models.moderation import ContentType, FlaggedContent, PendingContent, PendingStatus
from snet.models.user import User
from snet.schemas.ai import ModerationAction, ModerationResult
from snet.schemas.community import SubmissionOutcome
from snet.services.moderation_service import ModerationService
from snet.services.notification_service import NotificationService

logger = structlog.get_logger()


class ContentService:

    @classmethod
    async def submit_post(
        cls,
        db: AsyncSession,
        author: User,
        content: str,
        image_url: Optional[str] = None,
        is_anonymous: bool = True,
    ) -> SubmissionOutcome:
        text = cls._require_text(content)
        analysis = await ModerationService.analyze_content(text)

        def build() -> Post:
            return Post(
                author_id=author.id,
                content=text,
                image_url=image_url,
                is_anonymous=is_anonymous,
                flag_level=int(analysis.flag_level),
            )

        return await cls._apply(
            db, author, ContentType.POST, text, analysis, build,
            pending_fields={"image_url": image_url, "is_anonymous": is_anonymous},
        )

    @classmethod
    async def submit_comment(
        cls,
        db: AsyncSession,
        author: User,
        post_id: uuid.UUID,
        content: str,
        parent_comment_id: Optional[uuid.UUID] = None,
    ) -> SubmissionOutcome:
        post = await db.get(Post, post_id)
        if not post:
            raise NotFoundError("Post not found")
        text = cls._require_text(content)
        parent_comment_id = await cls._resolve_parent(db, post_id, parent_comment_id)

        analysis = await ModerationService.analyze_content(text)

        def build() -> Comment:
            return Comment(
                post_id=post_id,
                author_id=author.id,
                parent_comment_id=parent_comment_id,
                content=text,
                flag_level=int(analysis.flag_level),
            )

        return await cls._apply(
            db, author, ContentType.COMMENT, text, analysis, build,
            pending_fields={"post_id": post_id, "parent_comment_id": parent_comment_id},
        )

    @staticmethod
    def _require_text(content: str) -> str:
        text = (content or "").strip()
        if not text:
            raise InvalidStateError("Nội dung không được để trống")
        return text

    @staticmethod
    async def _resolve_parent(db: AsyncSession, post_id: uuid.UUID, parent_id: Optional[uuid.UUID]) -> Optional[uuid.UUID]:
        # Threads are two levels deep: replies to a reply hang off the root
        if parent_id is None:
            return None
        parent = await db.get(Comment, parent_id)
        if not parent or parent.post_id != post_id:
            raise NotFoundError("Parent comment not found")
        return parent.parent_comment_id or parent.id

    @classmethod
    async def _apply(
        cls,
        db: AsyncSession,
        author: User,
        content_type: ContentType,
        text: str,
        analysis: ModerationResult,
        build: Callable[[], Union[Post, Comment]],
        pending_fields: Dict[str, Any],
    ) -> SubmissionOutcome:
        content_id = pending_id = flagged_id = None

        try:
            if analysis.action == ModerationAction.BLOCK:
                logger.info("content_blocked", user_id=str(author.id), type=content_type.value, category=analysis.category)

            elif analysis.action == ModerationAction.REJECT:
                flagged = cls._flag(author.id, content_type, None, text, analysis)
                db.add(flagged)
                await NotificationService.notify_staff(
                    db,
                    "flagged_content",
                    "⚠️ Nội dung cần chú ý ngay",
                    f"Một học sinh vừa gửi nội dung có dấu hiệu: {category_label(analysis.category)}.",
                    link="/counselor/caution",
                    data={"user_id": str(author.id), "category": analysis.category},
                )
                await db.flush()
                flagged_id = flagged.id
                await db.commit()

            elif analysis.action == ModerationAction.PENDING:
                pending = PendingContent(
                    user_id=author.id,
                    content_type=content_type.value,
                    content=text,
                    pending_reason=analysis.reasoning,
                    status=PendingStatus.PENDING.value,
                    **pending_fields,
                )
                db.add(pending)
                await db.flush()
                pending_id = pending.id
                await db.commit()

            else:
                row = build()
                db.add(row)
                await db.flush()
                content_id = row.id
                if analysis.action == ModerationAction.FLAG_MILD:
                    flagged = cls._flag(author.id, content_type, row.id, text, analysis)
                    db.add(flagged)
                    await db.flush()
                    flagged_id = flagged.id
                await db.commit()

        except SQLAlchemyError as e:
            logger.error("content_submit_failed", type=content_type.value, action=analysis.action.value, error=str(e))
            await db.rollback()
            raise

        copy = get_moderation_message(analysis.action, analysis.category)
        return SubmissionOutcome(
            action=analysis.action,
            category=analysis.category,
            flag_level=analysis.flag_level,
            content_id=content_id,
            pending_id=pending_id,
            flagged_id=flagged_id,
            title=copy["title"],
            message=copy["message"],
            show_chat_suggestion=copy["show_chat_suggestion"],
            emergency_contacts=copy.get("emergency_contacts", []),
        )

    @staticmethod
    def _flag(user_id: uuid.UUID, content_type: ContentType, content_id: Optional[uuid.UUID],
              text: str, analysis: ModerationResult) -> FlaggedContent:
        return FlaggedContent(
            user_id=user_id,
            content_type=content_type.value,
            content_id=content_id,
            content=text,
            flag_level=int(analysis.flag_level),
            category=analysis.category,
            keywords=list(analysis.keywords),
            reasoning=analysis.reasoning,
            is_resolved=False,
        )

    # Reading

    @staticmethod
    def _author_view(author: Optional[User], hidden: bool) -> Optional[Dict[str, Any]]:
        if author is None or hidden:
            return None
        return {"id": author.id, "full_name": author.full_name, "role": author.role}

    @staticmethod
    async def _authors(db: AsyncSession, ids) -> Dict[uuid.UUID, User]:
        ids = {i for i in ids if i is not None}
        if not ids:
            return {}
        result = await db.execute(select(User).where(User.id.in_(list(ids))))
        return {u.id: u for u in result.scalars().all()}

    @classmethod
    async def list_posts(cls, db: AsyncSession, viewer: User, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(Post).order_by(Post.created_at.desc()).offset(offset).limit(limit)
        )
        posts = result.scalars().all()
        authors = await cls._authors(db, (p.author_id for p in posts))

        items = []
        for post in posts:
            liked_by = post.liked_by or []
            hidden = post.is_anonymous and not viewer.is_staff and post.author_id != viewer.id
            items.append({
                "id": post.id,
                "content": post.content,
                "image_url": post.image_url,
                "is_anonymous": post.is_anonymous,
                "flag_level": post.flag_level,
                "like_count": len(liked_by),
                "is_liked": str(viewer.id) in liked_by,
                "author": cls._author_view(authors.get(post.author_id), hidden),
                "created_at": post.created_at,
            })
        return items

    @classmethod
    async def list_comments(cls, db: AsyncSession, viewer: User, post_id: uuid.UUID) -> List[Dict[str, Any]]:
        """Comments for a post as a two-level tree, oldest first."""
        if not await db.get(Post, post_id):
            raise NotFoundError("Post not found")

        result = await db.execute(
            select(Comment).where(Comment.post_id == post_id).order_by(Comment.created_at.asc())
        )
        comments = result.scalars().all()
        authors = await cls._authors(db, (c.author_id for c in comments))

        nodes = []
        for comment in comments:
            liked_by = comment.liked_by or []
            nodes.append({
                "id": comment.id,
                "post_id": comment.post_id,
                "parent_comment_id": comment.parent_comment_id,
                "content": comment.content,
                "flag_level": comment.flag_level,
                "like_count": len(liked_by),
                "is_liked": str(viewer.id) in liked_by,
                "author": cls._author_view(authors.get(comment.author_id), False),
                "created_at": comment.created_at,
                "replies": [],
            })

        roots = [n for n in nodes if not n["parent_comment_id"]]
        by_id = {n["id"]: n for n in roots}
        for node in nodes:
            parent = by_id.get(node["parent_comment_id"]) if node["parent_comment_id"] else None
            if parent is not None:
                parent["replies"].append(node)
        return roots

    # Likes and deletes

    @staticmethod
    async def set_like(db: AsyncSession, user: User, model: Type[Union[Post, Comment]],
                       item_id: uuid.UUID, liked: bool) -> Dict[str, Any]:
        item = await db.get(model, item_id)
        if not item:
            raise NotFoundError(f"{model.__name__} not found")

        user_key = str(user.id)
        liked_by = list(item.liked_by or [])
        if liked and user_key not in liked_by:
            liked_by.append(user_key)
        elif not liked and user_key in liked_by:
            liked_by = [u for u in liked_by if u != user_key]
        else:
            return {"id": item.id, "like_count": len(liked_by), "is_liked": liked}

        item.liked_by = liked_by
        await db.commit()
        return {"id": item.id, "like_count": len(liked_by), "is_liked": liked}

    @staticmethod
    async def delete_item(db: AsyncSession, user: User, model: Type[Union[Post, Comment]], item_id: uuid.UUID) -> None:
        item = await db.get(model, item_id)
        if not item:
            raise NotFoundError(f"{model.__name__} not found")
        if item.author_id != user.id and not user.is_staff:
            raise PermissionDeniedError("You can only delete your own content")

        if model is Post:
            # SQLite does not enforce ON DELETE CASCADE without a pragma
            replies = await db.execute(select(Comment).where(Comment.post_id == item.id))
            for comment in replies.scalars().all():
                await db.delete(comment)
        elif item.parent_comment_id is None:
            replies = await db.execute(select(Comment).where(Comment.parent_comment_id == item.id))
            for comment in replies.scalars().all():
                await db.delete(comment)

        await db.delete(item)
        await db.commit()
        logger.info("content_deleted", type=model.__tablename__, id=str(item_id), by=str(user.id))
