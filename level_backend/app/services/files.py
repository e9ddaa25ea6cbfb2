import logging
import os
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.changeset import Changeset
from app.config import settings
from app.errors import ChangesetError
from models.file import File
from models.space import SpaceUser

logger = logging.getLogger("level.files")


def _upload_dir() -> str:
    base_dir = settings.UPLOAD_DIR
    if not os.path.isabs(base_dir):
        base_dir = os.path.join(os.getcwd(), base_dir)
    os.makedirs(base_dir, exist_ok=True)
    return base_dir


async def store_file(
    db: AsyncSession,
    space_user: SpaceUser,
    filename: str | None,
    content_type: str | None,
    data: bytes,
) -> File:
    changeset = Changeset(None, {"filename": (filename or "").strip()}).validate_required(["filename"])
    if len(data) > settings.MAX_UPLOAD_BYTES:
        changeset.add_error("file", "should be at most %{count} byte(s)", count=settings.MAX_UPLOAD_BYTES)
    if not changeset.valid:
        raise ChangesetError(changeset)

    ext = os.path.splitext(filename)[1].lower()
    fname = f"{uuid.uuid4().hex}{ext}"
    with open(os.path.join(_upload_dir(), fname), "wb") as f:
        f.write(data)

    record = File(
        space_id=space_user.space_id,
        space_user_id=space_user.id,
        filename=os.path.basename(filename),
        content_type=content_type,
        size=len(data),
        url=f"{settings.UPLOAD_URL_PREFIX.rstrip('/')}/{fname}",
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)
    logger.info("file stored id=%s space=%s size=%s", record.id, record.space_id, record.size)
    return record
