from typing import Any, List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from snet.db.session import get_db
from snet.api import deps
from snet.models.community import Comment, Post
from snet.models.user import User
from snet.schemas.community import (
    CommentCreateRequest,
    CommentResponse,
    LikeResponse,
    PostCreateRequest,
    PostResponse,
    StatusResponse,
    SubmissionOutcome,
)
from snet.services.content_service import ContentService

router = APIRouter()


class LikeRequest(BaseModel):
    liked: bool = True


@router.get("/posts", response_model=List[PostResponse])
async def list_posts(
    skip: int = 0,
    limit: int = 50,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return await ContentService.list_posts(db, current_user, limit=limit, offset=skip)


@router.post("/posts", response_model=SubmissionOutcome, status_code=status.HTTP_201_CREATED)
async def create_post(
    request: PostCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    Submit a post. The response tells the client what moderation did with it
    (published, held for review, rejected with support contacts, or blocked).
    """
    return await ContentService.submit_post(
        db, current_user, request.content, image_url=request.image_url, is_anonymous=request.is_anonymous
    )


@router.delete("/posts/{post_id}", response_model=StatusResponse)
async def delete_post(
    post_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    await ContentService.delete_item(db, current_user, Post, post_id)
    return {"status": "deleted"}


@router.post("/posts/{post_id}/like", response_model=LikeResponse)
async def like_post(
    post_id: UUID,
    request: Optional[LikeRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return await ContentService.set_like(db, current_user, Post, post_id, request.liked if request else True)


@router.get("/posts/{post_id}/comments", response_model=List[CommentResponse])
async def list_comments(
    post_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return await ContentService.list_comments(db, current_user, post_id)


@router.post("/posts/{post_id}/comments", response_model=SubmissionOutcome, status_code=status.HTTP_201_CREATED)
async def create_comment(
    post_id: UUID,
    request: CommentCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return await ContentService.submit_comment(
        db, current_user, post_id, request.content, parent_comment_id=request.parent_comment_id
    )


@router.delete("/comments/{comment_id}", response_model=StatusResponse)
async def delete_comment(
    comment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    await ContentService.delete_item(db, current_user, Comment, comment_id)
    return {"status": "deleted"}


@router.post("/comments/{comment_id}/like", response_model=LikeResponse)
async def like_comment(
    comment_id: UUID,
    request: Optional[LikeRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    return await ContentService.set_like(db, current_user, Comment, comment_id, request.liked if request else True)
