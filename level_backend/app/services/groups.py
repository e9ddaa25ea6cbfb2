import logging

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.changeset import Changeset
from app.errors import ChangesetError, NotFoundError
from models.group import Group, GroupUser
from models.space import SpaceUser

logger = logging.getLogger("level.groups")

GROUP_FIELDS = ("name", "description", "is_private")


async def _validate_group(db: AsyncSession, changeset: Changeset, space_id: int, group_id: int | None = None) -> Changeset:
    if isinstance(changeset.changes.get("name"), str):
        changeset.put_change("name", changeset.changes["name"].strip())
    # a null flag leaves the stored value alone
    if "is_private" in changeset.changes and changeset.changes["is_private"] is None:
        del changeset.changes["is_private"]
    changeset.validate_required(["name"]).validate_length("name", max=255)
    if changeset.valid:
        query = select(Group.id).where(
            Group.space_id == space_id,
            func.lower(Group.name) == changeset.get_field("name").lower(),
        )
        if group_id is not None:
            query = query.where(Group.id != group_id)
        if (await db.execute(query)).first():
            changeset.add_error("name", "has already been taken", validation="unsafe_unique")
    return changeset


async def create_group(db: AsyncSession, space_user: SpaceUser, args: dict) -> Group:
    changeset = Changeset(None, args, permitted=GROUP_FIELDS)
    await _validate_group(db, changeset, space_user.space_id)
    if not changeset.valid:
        raise ChangesetError(changeset)

    group = changeset.apply_to(Group(
        space_id=space_user.space_id,
        creator_id=space_user.id,
        state="OPEN",
        is_private=False,
    ))
    group.is_private = bool(group.is_private)
    db.add(group)
    await db.flush()
    db.add(GroupUser(
        space_id=space_user.space_id,
        group_id=group.id,
        space_user_id=space_user.id,
        role="OWNER",
    ))
    await db.commit()
    await db.refresh(group)
    logger.info("group created id=%s space=%s name=%s", group.id, group.space_id, group.name)
    return group


async def get_group(db: AsyncSession, space_user: SpaceUser, group_id) -> Group:
    membership = select(GroupUser.group_id).where(GroupUser.space_user_id == space_user.id)
    group = (await db.execute(
        select(Group).where(
            Group.id == group_id,
            Group.space_id == space_user.space_id,
            or_(Group.is_private.is_(False), Group.id.in_(membership)),
        )
    )).scalar_one_or_none()
    if not group:
        raise NotFoundError("Group not found")
    return group


async def update_group(db: AsyncSession, group: Group, args: dict) -> Group:
    changeset = Changeset(group, args, permitted=GROUP_FIELDS)
    await _validate_group(db, changeset, group.space_id, group.id)
    if not changeset.valid:
        raise ChangesetError(changeset)
    changeset.apply_to(group)
    await db.commit()
    await db.refresh(group)
    return group


async def list_groups(db: AsyncSession, space_user: SpaceUser) -> list[Group]:
    membership = select(GroupUser.group_id).where(GroupUser.space_user_id == space_user.id)
    rows = await db.execute(
        select(Group)
        .where(
            Group.space_id == space_user.space_id,
            Group.state == "OPEN",
            or_(Group.is_private.is_(False), Group.id.in_(membership)),
        )
        .order_by(func.lower(Group.name))
    )
    return list(rows.scalars().all())
