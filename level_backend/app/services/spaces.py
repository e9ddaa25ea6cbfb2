import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.changeset import Changeset
from app.errors import ChangesetError, ForbiddenError, NotFoundError
from models.space import Space, SpaceUser, SpaceSetupStep, SETUP_STATES
from models.user import User

logger = logging.getLogger("level.spaces")

SLUG_FORMAT = r"^[a-z0-9][a-z0-9-]*$"
SETUP_ROLES = {"OWNER", "ADMIN"}


def space_changeset(space: Space | None, args: dict) -> Changeset:
    changeset = Changeset(space, args, permitted=("name", "slug"))
    if isinstance(changeset.changes.get("slug"), str):
        changeset.put_change("slug", changeset.changes["slug"].strip().lower())
    return (
        changeset
        .validate_required(["name", "slug"])
        .validate_length("name", max=255)
        .validate_length("slug", max=63)
        .validate_format("slug", SLUG_FORMAT)
    )


async def create_space(db: AsyncSession, user: User, args: dict) -> tuple[Space, SpaceUser]:
    changeset = space_changeset(None, args)
    if changeset.valid:
        taken = (await db.execute(
            select(Space.id).where(func.lower(Space.slug) == changeset.changes["slug"])
        )).first()
        if taken:
            changeset.add_error("slug", "has already been taken", validation="unsafe_unique")
    if not changeset.valid:
        raise ChangesetError(changeset)

    space = changeset.apply_to(Space(state="ACTIVE", setup_state=SETUP_STATES[0]))
    db.add(space)
    await db.flush()
    space_user = SpaceUser(
        space_id=space.id,
        user_id=user.id,
        role="OWNER",
        state="ACTIVE",
        first_name=user.first_name or "",
        last_name=user.last_name or "",
    )
    db.add(space_user)
    await db.commit()
    await db.refresh(space)
    await db.refresh(space_user)
    logger.info("space created id=%s slug=%s owner=%s", space.id, space.slug, user.id)
    return space, space_user


async def get_space(db: AsyncSession, user: User, space_id) -> tuple[Space, SpaceUser]:
    row = (await db.execute(
        select(Space, SpaceUser)
        .join(SpaceUser, SpaceUser.space_id == Space.id)
        .where(
            Space.id == space_id,
            Space.state == "ACTIVE",
            SpaceUser.user_id == user.id,
            SpaceUser.state == "ACTIVE",
        )
    )).first()
    if not row:
        raise NotFoundError("Space not found")
    return row[0], row[1]


async def add_member(db: AsyncSession, space: Space, user: User, role: str = "MEMBER") -> SpaceUser:
    existing = (await db.execute(
        select(SpaceUser).where(SpaceUser.space_id == space.id, SpaceUser.user_id == user.id)
    )).scalar_one_or_none()
    if existing:
        existing.state = "ACTIVE"
        await db.commit()
        return existing
    space_user = SpaceUser(
        space_id=space.id,
        user_id=user.id,
        role=role,
        state="ACTIVE",
        first_name=user.first_name or "",
        last_name=user.last_name or "",
    )
    db.add(space_user)
    await db.commit()
    await db.refresh(space_user)
    return space_user


def next_setup_state(state: str) -> str:
    idx = SETUP_STATES.index(state)
    return SETUP_STATES[min(idx + 1, len(SETUP_STATES) - 1)]


async def complete_setup_step(db: AsyncSession, space_user: SpaceUser, space: Space, args: dict) -> str:
    if space_user.role not in SETUP_ROLES:
        raise ForbiddenError("Only owners and admins can complete setup steps")

    changeset = (
        Changeset(None, args, permitted=("state", "is_skipped"))
        .validate_required(["state"])
        .validate_inclusion("state", SETUP_STATES)
    )
    state = changeset.get_field("state")
    if changeset.valid and state == "COMPLETE" and space.setup_state == "COMPLETE":
        return "COMPLETE"
    if changeset.valid and state != space.setup_state:
        changeset.add_error("state", "is not the current setup step")
    if not changeset.valid:
        raise ChangesetError(changeset)

    db.add(SpaceSetupStep(
        space_id=space.id,
        space_user_id=space_user.id,
        state=state,
        is_skipped=bool(changeset.get_field("is_skipped", False)),
    ))
    space.setup_state = next_setup_state(state)
    await db.commit()
    logger.info("setup step completed space=%s state=%s next=%s", space.id, state, space.setup_state)
    return space.setup_state
