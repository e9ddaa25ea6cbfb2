from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.serializers import serialize_post, serialize_replies_page
from app.database import get_db
from app.security import get_current_user
from app.services import posts as posts_service
from app.services import spaces as spaces_service
from models.user import User
from schemas.post import PostDetailResponse, RepliesPage

router = APIRouter()


@router.get("/{space_id}/posts/{post_id}", response_model=PostDetailResponse)
async def get_post(
    space_id: int,
    post_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    _, space_user = await spaces_service.get_space(db, user, space_id)
    post = await posts_service.get_post(db, space_user, post_id)
    return PostDetailResponse(
        post=await serialize_post(db, space_user, post),
        replies=await serialize_replies_page(db, space_user, post),
    )


@router.get("/{space_id}/posts/{post_id}/replies", response_model=RepliesPage)
async def list_replies(
    space_id: int,
    post_id: int,
    before: int | None = None,
    limit: int | None = Query(default=None, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    _, space_user = await spaces_service.get_space(db, user, space_id)
    post = await posts_service.get_post(db, space_user, post_id)
    return await serialize_replies_page(db, space_user, post, before=before, limit=limit)
