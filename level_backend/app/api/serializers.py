from sqlalchemy.ext.asyncio import AsyncSession

from app.services import posts as posts_service
from models.post import Post, Reply
from models.space import SpaceUser
from schemas.file import FileResponse
from schemas.group import GroupResponse
from schemas.post import AuthorResponse, GroupRef, PostResponse, ReplyResponse, RepliesPage
from schemas.space import SpaceResponse


def _author(authors: dict[int, SpaceUser], space_user_id) -> AuthorResponse | None:
    su = authors.get(space_user_id)
    if not su:
        return None
    return AuthorResponse(id=su.id, first_name=su.first_name or "", last_name=su.last_name or "")


async def serialize_post(db: AsyncSession, space_user: SpaceUser, post: Post) -> PostResponse:
    authors = await posts_service.authors_for(db, [post.space_user_id])
    files = await posts_service.files_for(db, post_ids=[post.id])
    groups = await posts_service.groups_for_post(db, post)
    count, mine = await posts_service.reaction_state(db, space_user, post)
    return PostResponse(
        id=post.id,
        space_id=post.space_id,
        body=post.body or "",
        state=post.state,
        author=_author(authors, post.space_user_id),
        groups=[GroupRef(id=g.id, name=g.name) for g in groups],
        files=[FileResponse.model_validate(f) for f in files.get(("post", post.id), [])],
        reaction_count=count,
        has_reacted=mine,
        can_edit=post.space_user_id == space_user.id,
        created_at=post.created_at,
    )


async def serialize_replies(db: AsyncSession, space_user: SpaceUser, replies: list[Reply]) -> list[ReplyResponse]:
    ids = [r.id for r in replies]
    authors = await posts_service.authors_for(db, [r.space_user_id for r in replies])
    files = await posts_service.files_for(db, reply_ids=ids)
    reactions = await posts_service.reply_reaction_states(db, space_user, ids)
    return [
        ReplyResponse(
            id=r.id,
            post_id=r.post_id,
            body=r.body or "",
            author=_author(authors, r.space_user_id),
            files=[FileResponse.model_validate(f) for f in files.get(("reply", r.id), [])],
            reaction_count=reactions[r.id][0],
            has_reacted=reactions[r.id][1],
            can_edit=r.space_user_id == space_user.id,
            created_at=r.created_at,
        ) for r in replies
    ]


async def serialize_replies_page(db: AsyncSession, space_user: SpaceUser, post: Post, before=None, limit=None) -> RepliesPage:
    replies, has_previous_page = await posts_service.list_replies(db, space_user, post, before=before, limit=limit)
    return RepliesPage(
        replies=await serialize_replies(db, space_user, replies),
        has_previous_page=has_previous_page,
    )


async def serialize_payload(db: AsyncSession, space_user: SpaceUser | None, payload: dict) -> dict:
    """Turn the model instances in a mutation payload into JSON-ready dicts."""
    out = {}
    for key, value in payload.items():
        if key == "payloads":
            out[key] = [await serialize_payload(db, space_user, p) for p in value]
        elif value is None or key not in {"space", "group", "post", "reply"}:
            out[key] = value
        elif key == "space":
            out[key] = SpaceResponse.model_validate(value).model_dump(mode="json")
        elif key == "group":
            out[key] = GroupResponse.model_validate(value).model_dump(mode="json")
        elif key == "post":
            out[key] = (await serialize_post(db, space_user, value)).model_dump(mode="json")
        else:
            out[key] = (await serialize_replies(db, space_user, [value]))[0].model_dump(mode="json")
    return out
