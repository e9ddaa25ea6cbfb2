import logging
from collections import defaultdict

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.changeset import Changeset
from app.config import settings
from app.errors import ChangesetError, ForbiddenError, NotFoundError
from app.services import groups as groups_service
from models.file import File, PostFile, ReplyFile
from models.group import Group, GroupUser
from models.post import Post, PostGroup, Reply, PostReaction, ReplyReaction
from models.space import SpaceUser

logger = logging.getLogger("level.posts")

MODERATOR_ROLES = {"OWNER", "ADMIN"}
DEFAULT_REACTION = "👍"


def _body_changeset(data, args: dict) -> Changeset:
    return Changeset(data, args, permitted=("body",)).validate_required(["body"])


def _file_ids(args: dict) -> list[int]:
    ids = []
    for raw in args.get("file_ids") or []:
        try:
            ids.append(int(raw))
        except (TypeError, ValueError):
            continue
    # keep first-seen order
    return list(dict.fromkeys(ids))


async def _load_files(db: AsyncSession, space_user: SpaceUser, file_ids: list[int], changeset: Changeset) -> list[File]:
    if not file_ids:
        return []
    rows = await db.execute(select(File).where(File.id.in_(file_ids), File.space_id == space_user.space_id))
    files = {f.id: f for f in rows.scalars().all()}
    if len(files) != len(file_ids):
        changeset.add_error("file_ids", "is invalid", validation="assoc")
    return [files[i] for i in file_ids if i in files]


def can_moderate(space_user: SpaceUser, author_id: int) -> bool:
    return space_user.id == author_id or space_user.role in MODERATOR_ROLES


# Posts

async def create_post(db: AsyncSession, space_user: SpaceUser, args: dict) -> Post:
    changeset = _body_changeset(None, args)
    group = None
    if args.get("group_id") is not None:
        try:
            group = await groups_service.get_group(db, space_user, args["group_id"])
        except NotFoundError:
            changeset.add_error("group_id", "does not exist", validation="assoc")
    files = await _load_files(db, space_user, _file_ids(args), changeset)
    if not changeset.valid:
        raise ChangesetError(changeset)

    post = changeset.apply_to(Post(space_id=space_user.space_id, space_user_id=space_user.id, state="OPEN"))
    db.add(post)
    await db.flush()
    if group is not None:
        db.add(PostGroup(space_id=space_user.space_id, post_id=post.id, group_id=group.id))
    for f in files:
        db.add(PostFile(space_id=space_user.space_id, post_id=post.id, file_id=f.id))
    await db.commit()
    await db.refresh(post)
    logger.info("post created id=%s space=%s author=%s", post.id, post.space_id, space_user.id)
    return post


async def get_post(db: AsyncSession, space_user: SpaceUser, post_id) -> Post:
    post = (await db.execute(
        select(Post).where(
            Post.id == post_id,
            Post.space_id == space_user.space_id,
            Post.state != "DELETED",
        )
    )).scalar_one_or_none()
    if not post:
        raise NotFoundError("Post not found")

    # a post that only lives in private groups needs a group membership
    group_rows = await db.execute(
        select(Group.id, Group.is_private)
        .join(PostGroup, PostGroup.group_id == Group.id)
        .where(PostGroup.post_id == post.id)
    )
    groups = group_rows.all()
    if groups and all(is_private for _, is_private in groups):
        member = (await db.execute(
            select(GroupUser.id).where(
                GroupUser.space_user_id == space_user.id,
                GroupUser.group_id.in_([gid for gid, _ in groups]),
            )
        )).first()
        if not member:
            raise NotFoundError("Post not found")
    return post


async def update_post(db: AsyncSession, space_user: SpaceUser, post: Post, args: dict) -> Post:
    if post.space_user_id != space_user.id:
        raise ForbiddenError("Only the author can edit a post")
    changeset = _body_changeset(post, args)
    if not changeset.valid:
        raise ChangesetError(changeset)
    changeset.apply_to(post)
    await db.commit()
    await db.refresh(post)
    return post


async def _set_post_state(db: AsyncSession, space_user: SpaceUser, post: Post, state: str) -> Post:
    if not can_moderate(space_user, post.space_user_id):
        raise ForbiddenError()
    if post.state == "DELETED":
        raise NotFoundError("Post not found")
    post.state = state
    await db.commit()
    await db.refresh(post)
    logger.info("post state changed id=%s state=%s by=%s", post.id, state, space_user.id)
    return post


async def close_post(db: AsyncSession, space_user: SpaceUser, post: Post) -> Post:
    return await _set_post_state(db, space_user, post, "CLOSED")


async def reopen_post(db: AsyncSession, space_user: SpaceUser, post: Post) -> Post:
    return await _set_post_state(db, space_user, post, "OPEN")


async def delete_post(db: AsyncSession, space_user: SpaceUser, post: Post) -> Post:
    return await _set_post_state(db, space_user, post, "DELETED")


# Replies

async def create_reply(db: AsyncSession, space_user: SpaceUser, post: Post, args: dict) -> Reply:
    if post.state == "DELETED":
        raise NotFoundError("Post not found")
    changeset = _body_changeset(None, args)
    files = await _load_files(db, space_user, _file_ids(args), changeset)
    if not changeset.valid:
        raise ChangesetError(changeset)

    reply = changeset.apply_to(Reply(
        space_id=post.space_id,
        post_id=post.id,
        space_user_id=space_user.id,
        is_deleted=False,
    ))
    db.add(reply)
    await db.flush()
    for f in files:
        db.add(ReplyFile(space_id=post.space_id, reply_id=reply.id, file_id=f.id))
    await db.commit()
    await db.refresh(reply)
    return reply


async def get_reply(db: AsyncSession, space_user: SpaceUser, post: Post, reply_id) -> Reply:
    reply = (await db.execute(
        select(Reply).where(
            Reply.id == reply_id,
            Reply.post_id == post.id,
            Reply.is_deleted.is_(False),
        )
    )).scalar_one_or_none()
    if not reply:
        raise NotFoundError("Reply not found")
    return reply


async def update_reply(db: AsyncSession, space_user: SpaceUser, reply: Reply, args: dict) -> Reply:
    if reply.space_user_id != space_user.id:
        raise ForbiddenError("Only the author can edit a reply")
    changeset = _body_changeset(reply, args)
    if not changeset.valid:
        raise ChangesetError(changeset)
    changeset.apply_to(reply)
    await db.commit()
    await db.refresh(reply)
    return reply


async def delete_reply(db: AsyncSession, space_user: SpaceUser, reply: Reply) -> Reply:
    if reply.space_user_id != space_user.id:
        raise ForbiddenError("Only the author can delete a reply")
    reply.is_deleted = True
    await db.commit()
    await db.refresh(reply)
    return reply


async def list_replies(
    db: AsyncSession,
    space_user: SpaceUser,
    post: Post,
    before: int | None = None,
    limit: int | None = None,
) -> tuple[list[Reply], bool]:
    limit = max(1, min(limit or settings.REPLIES_PAGE_SIZE, 100))
    query = select(Reply).where(Reply.post_id == post.id, Reply.is_deleted.is_(False))
    if before is not None:
        query = query.where(Reply.id < before)
    rows = await db.execute(query.order_by(Reply.id.desc()).limit(limit + 1))
    replies = list(rows.scalars().all())
    has_previous_page = len(replies) > limit
    replies = replies[:limit]
    replies.reverse()
    return replies, has_previous_page


# Reactions

async def create_post_reaction(db: AsyncSession, space_user: SpaceUser, post: Post) -> Post:
    exists = (await db.execute(
        select(PostReaction.id).where(PostReaction.post_id == post.id, PostReaction.space_user_id == space_user.id)
    )).first()
    if not exists:
        db.add(PostReaction(space_id=post.space_id, post_id=post.id, space_user_id=space_user.id, value=DEFAULT_REACTION))
        await db.commit()
    return post


async def delete_post_reaction(db: AsyncSession, space_user: SpaceUser, post: Post) -> Post:
    await db.execute(
        delete(PostReaction).where(PostReaction.post_id == post.id, PostReaction.space_user_id == space_user.id)
    )
    await db.commit()
    return post


async def create_reply_reaction(db: AsyncSession, space_user: SpaceUser, reply: Reply) -> Reply:
    exists = (await db.execute(
        select(ReplyReaction.id).where(ReplyReaction.reply_id == reply.id, ReplyReaction.space_user_id == space_user.id)
    )).first()
    if not exists:
        db.add(ReplyReaction(
            space_id=reply.space_id,
            post_id=reply.post_id,
            reply_id=reply.id,
            space_user_id=space_user.id,
            value=DEFAULT_REACTION,
        ))
        await db.commit()
    return reply


async def delete_reply_reaction(db: AsyncSession, space_user: SpaceUser, reply: Reply) -> Reply:
    await db.execute(
        delete(ReplyReaction).where(ReplyReaction.reply_id == reply.id, ReplyReaction.space_user_id == space_user.id)
    )
    await db.commit()
    return reply


async def reaction_state(db: AsyncSession, space_user: SpaceUser, target) -> tuple[int, bool]:
    if isinstance(target, Reply):
        model, column = ReplyReaction, ReplyReaction.reply_id
    else:
        model, column = PostReaction, PostReaction.post_id
    count = (await db.execute(select(func.count(model.id)).where(column == target.id))).scalar_one() or 0
    mine = (await db.execute(
        select(model.id).where(column == target.id, model.space_user_id == space_user.id)
    )).first()
    return count, mine is not None


async def reply_reaction_states(db: AsyncSession, space_user: SpaceUser, reply_ids: list[int]) -> dict[int, tuple[int, bool]]:
    states = {rid: (0, False) for rid in reply_ids}
    if not reply_ids:
        return states
    counts = await db.execute(
        select(ReplyReaction.reply_id, func.count(ReplyReaction.id))
        .where(ReplyReaction.reply_id.in_(reply_ids))
        .group_by(ReplyReaction.reply_id)
    )
    for reply_id, count in counts:
        states[reply_id] = (count, False)
    mine = await db.execute(
        select(ReplyReaction.reply_id).where(
            ReplyReaction.reply_id.in_(reply_ids),
            ReplyReaction.space_user_id == space_user.id,
        )
    )
    for (reply_id,) in mine:
        states[reply_id] = (states[reply_id][0], True)
    return states


async def files_for(db: AsyncSession, *, post_ids: list[int] = (), reply_ids: list[int] = ()) -> dict:
    result: dict[tuple[str, int], list[File]] = defaultdict(list)
    if post_ids:
        rows = await db.execute(
            select(PostFile.post_id, File).join(File, File.id == PostFile.file_id)
            .where(PostFile.post_id.in_(post_ids)).order_by(PostFile.id)
        )
        for post_id, f in rows:
            result[("post", post_id)].append(f)
    if reply_ids:
        rows = await db.execute(
            select(ReplyFile.reply_id, File).join(File, File.id == ReplyFile.file_id)
            .where(ReplyFile.reply_id.in_(reply_ids)).order_by(ReplyFile.id)
        )
        for reply_id, f in rows:
            result[("reply", reply_id)].append(f)
    return result


async def authors_for(db: AsyncSession, space_user_ids) -> dict[int, SpaceUser]:
    ids = list({i for i in space_user_ids if i is not None})
    if not ids:
        return {}
    rows = await db.execute(select(SpaceUser).where(SpaceUser.id.in_(ids)))
    return {su.id: su for su in rows.scalars().all()}


async def groups_for_post(db: AsyncSession, post: Post) -> list[Group]:
    rows = await db.execute(
        select(Group).join(PostGroup, PostGroup.group_id == Group.id).where(PostGroup.post_id == post.id).order_by(Group.name)
    )
    return list(rows.scalars().all())
