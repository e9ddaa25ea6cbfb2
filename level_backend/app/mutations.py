"""Mutation resolvers.

Each resolver takes the mutation arguments and a context carrying the
authenticated user, calls into the domain modules and returns a payload dict.
Validation failures come back as ``success: False`` with per-field ``errors``;
missing or forbidden records raise a ``LevelError`` for the HTTP layer, except
where a resolver documents otherwise.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.changeset import Changeset
from app.errors import ChangesetError, LevelError
from app.services import groups as groups_service
from app.services import posts as posts_service
from app.services import spaces as spaces_service
from app.utils.operation_log import add_operation_log
from app.ws import event_manager
from models.user import User

logger = logging.getLogger("level.mutations")


@dataclass
class MutationContext:
    current_user: User


def format_errors(changeset: Changeset) -> list[dict]:
    errors = []
    for attribute, (message, props) in changeset.errors:
        for key, value in props.items():
            message = message.replace(f"%{{{key}}}", str(value))
        errors.append({"attribute": attribute, "message": message})
    return errors


async def _audit(db: AsyncSession, context: MutationContext, action: str, space_id=None, detail=None):
    add_operation_log(db, user_id=context.current_user.id, action=action, space_id=space_id, detail=detail)
    await db.commit()


async def _publish(space_id: int, event_type: str, **payload):
    await event_manager.broadcast(space_id, {"type": event_type, "space_id": space_id, **payload})


async def create_space(db: AsyncSession, args: dict, context: MutationContext) -> dict:
    try:
        space, _ = await spaces_service.create_space(db, context.current_user, args)
    except ChangesetError as e:
        return {"success": False, "space": None, "errors": format_errors(e.changeset)}
    except LevelError as e:
        logger.warning("create_space failed user=%s reason=%s", context.current_user.id, e.detail)
        return {"success": False, "space": None, "errors": []}
    await _audit(db, context, "create_space", space.id, {"slug": space.slug})
    return {"success": True, "space": space, "errors": []}


async def create_group(db: AsyncSession, args: dict, context: MutationContext) -> dict:
    # unlike update_group, a failed space lookup is reported in the payload
    try:
        _, space_user = await spaces_service.get_space(db, context.current_user, args.get("space_id"))
        group = await groups_service.create_group(db, space_user, args)
    except ChangesetError as e:
        return {"success": False, "group": None, "errors": format_errors(e.changeset)}
    except LevelError as e:
        logger.warning("create_group failed user=%s reason=%s", context.current_user.id, e.detail)
        return {"success": False, "group": None, "errors": []}
    await _audit(db, context, "create_group", group.space_id, {"group_id": group.id})
    return {"success": True, "group": group, "errors": []}


async def update_group(db: AsyncSession, args: dict, context: MutationContext) -> dict:
    _, space_user = await spaces_service.get_space(db, context.current_user, args.get("space_id"))
    group = await groups_service.get_group(db, space_user, args.get("group_id"))
    try:
        group = await groups_service.update_group(db, group, args)
    except ChangesetError as e:
        return {"success": False, "group": None, "errors": format_errors(e.changeset)}
    await _audit(db, context, "update_group", group.space_id, {"group_id": group.id})
    return {"success": True, "group": group, "errors": []}


async def _bulk_create_group(db: AsyncSession, space_user, name) -> dict:
    args = {"name": name}
    try:
        group = await groups_service.create_group(db, space_user, args)
    except ChangesetError as e:
        return {"success": False, "group": None, "errors": format_errors(e.changeset), "args": args}
    except LevelError:
        return {"success": False, "group": None, "errors": [], "args": args}
    return {"success": True, "group": group, "errors": [], "args": args}


async def bulk_create_groups(db: AsyncSession, args: dict, context: MutationContext) -> dict:
    _, space_user = await spaces_service.get_space(db, context.current_user, args.get("space_id"))
    payloads = [await _bulk_create_group(db, space_user, name) for name in args.get("names") or []]
    created = [p["group"].id for p in payloads if p["success"]]
    if created:
        await _audit(db, context, "bulk_create_groups", space_user.space_id, {"group_ids": created})
    return {"payloads": payloads}


async def create_post(db: AsyncSession, args: dict, context: MutationContext) -> dict:
    _, space_user = await spaces_service.get_space(db, context.current_user, args.get("space_id"))
    try:
        post = await posts_service.create_post(db, space_user, args)
    except ChangesetError as e:
        return {"success": False, "post": None, "errors": format_errors(e.changeset)}
    await _audit(db, context, "create_post", post.space_id, {"post_id": post.id})
    await _publish(post.space_id, "post_created", post_id=post.id)
    return {"success": True, "post": post, "errors": []}


async def complete_setup_step(db: AsyncSession, args: dict, context: MutationContext) -> dict:
    space, space_user = await spaces_service.get_space(db, context.current_user, args.get("space_id"))
    next_state = await spaces_service.complete_setup_step(db, space_user, space, args)
    await _audit(db, context, "complete_setup_step", space.id, {"state": args.get("state"), "next_state": next_state})
    return {"success": True, "state": next_state}


# Post and reply resolvers backing the post view

async def _load_post(db: AsyncSession, args: dict, context: MutationContext):
    _, space_user = await spaces_service.get_space(db, context.current_user, args.get("space_id"))
    post = await posts_service.get_post(db, space_user, args.get("post_id"))
    return space_user, post


async def _load_reply(db: AsyncSession, args: dict, context: MutationContext):
    space_user, post = await _load_post(db, args, context)
    reply = await posts_service.get_reply(db, space_user, post, args.get("reply_id"))
    return space_user, post, reply


async def update_post(db: AsyncSession, args: dict, context: MutationContext) -> dict:
    space_user, post = await _load_post(db, args, context)
    try:
        post = await posts_service.update_post(db, space_user, post, args)
    except ChangesetError as e:
        return {"success": False, "post": None, "errors": format_errors(e.changeset)}
    await _audit(db, context, "update_post", post.space_id, {"post_id": post.id})
    await _publish(post.space_id, "post_updated", post_id=post.id)
    return {"success": True, "post": post, "errors": []}


async def _change_post_state(db, args, context, action, event_type, fn) -> dict:
    space_user, post = await _load_post(db, args, context)
    post = await fn(db, space_user, post)
    await _audit(db, context, action, post.space_id, {"post_id": post.id})
    await _publish(post.space_id, event_type, post_id=post.id, state=post.state)
    return {"success": True, "post": post, "errors": []}


async def close_post(db: AsyncSession, args: dict, context: MutationContext) -> dict:
    return await _change_post_state(db, args, context, "close_post", "post_closed", posts_service.close_post)


async def reopen_post(db: AsyncSession, args: dict, context: MutationContext) -> dict:
    return await _change_post_state(db, args, context, "reopen_post", "post_reopened", posts_service.reopen_post)


async def delete_post(db: AsyncSession, args: dict, context: MutationContext) -> dict:
    return await _change_post_state(db, args, context, "delete_post", "post_deleted", posts_service.delete_post)


async def create_reply(db: AsyncSession, args: dict, context: MutationContext) -> dict:
    space_user, post = await _load_post(db, args, context)
    try:
        reply = await posts_service.create_reply(db, space_user, post, args)
    except ChangesetError as e:
        return {"success": False, "reply": None, "errors": format_errors(e.changeset)}
    await _audit(db, context, "create_reply", post.space_id, {"post_id": post.id, "reply_id": reply.id})
    await _publish(post.space_id, "reply_created", post_id=post.id, reply_id=reply.id)
    return {"success": True, "reply": reply, "errors": []}


async def update_reply(db: AsyncSession, args: dict, context: MutationContext) -> dict:
    space_user, post, reply = await _load_reply(db, args, context)
    try:
        reply = await posts_service.update_reply(db, space_user, reply, args)
    except ChangesetError as e:
        return {"success": False, "reply": None, "errors": format_errors(e.changeset)}
    await _audit(db, context, "update_reply", post.space_id, {"post_id": post.id, "reply_id": reply.id})
    await _publish(post.space_id, "reply_updated", post_id=post.id, reply_id=reply.id)
    return {"success": True, "reply": reply, "errors": []}


async def delete_reply(db: AsyncSession, args: dict, context: MutationContext) -> dict:
    space_user, post, reply = await _load_reply(db, args, context)
    reply = await posts_service.delete_reply(db, space_user, reply)
    await _audit(db, context, "delete_reply", post.space_id, {"post_id": post.id, "reply_id": reply.id})
    await _publish(post.space_id, "reply_deleted", post_id=post.id, reply_id=reply.id)
    return {"success": True, "reply": reply, "errors": []}


async def _post_reaction(db, args, context, action, fn) -> dict:
    space_user, post = await _load_post(db, args, context)
    post = await fn(db, space_user, post)
    count, _ = await posts_service.reaction_state(db, space_user, post)
    await _audit(db, context, action, post.space_id, {"post_id": post.id})
    await _publish(post.space_id, "post_reactions_updated", post_id=post.id, reaction_count=count)
    return {"success": True, "post": post, "errors": []}


async def create_post_reaction(db: AsyncSession, args: dict, context: MutationContext) -> dict:
    return await _post_reaction(db, args, context, "create_post_reaction", posts_service.create_post_reaction)


async def delete_post_reaction(db: AsyncSession, args: dict, context: MutationContext) -> dict:
    return await _post_reaction(db, args, context, "delete_post_reaction", posts_service.delete_post_reaction)


async def _reply_reaction(db, args, context, action, fn) -> dict:
    space_user, post, reply = await _load_reply(db, args, context)
    reply = await fn(db, space_user, reply)
    count, _ = await posts_service.reaction_state(db, space_user, reply)
    await _audit(db, context, action, post.space_id, {"post_id": post.id, "reply_id": reply.id})
    await _publish(post.space_id, "reply_reactions_updated", post_id=post.id, reply_id=reply.id, reaction_count=count)
    return {"success": True, "reply": reply, "errors": []}


async def create_reply_reaction(db: AsyncSession, args: dict, context: MutationContext) -> dict:
    return await _reply_reaction(db, args, context, "create_reply_reaction", posts_service.create_reply_reaction)


async def delete_reply_reaction(db: AsyncSession, args: dict, context: MutationContext) -> dict:
    return await _reply_reaction(db, args, context, "delete_reply_reaction", posts_service.delete_reply_reaction)


RESOLVERS = {
    "createSpace": create_space,
    "createGroup": create_group,
    "updateGroup": update_group,
    "bulkCreateGroups": bulk_create_groups,
    "createPost": create_post,
    "completeSetupStep": complete_setup_step,
    "updatePost": update_post,
    "closePost": close_post,
    "reopenPost": reopen_post,
    "deletePost": delete_post,
    "createReply": create_reply,
    "updateReply": update_reply,
    "deleteReply": delete_reply,
    "createPostReaction": create_post_reaction,
    "deletePostReaction": delete_post_reaction,
    "createReplyReaction": create_reply_reaction,
    "deleteReplyReaction": delete_reply_reaction,
}
