from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.security import get_current_user
from app.services import files as files_service
from app.services import spaces as spaces_service
from app.utils.operation_log import add_operation_log
from models.user import User
from schemas.file import FileResponse

router = APIRouter()


@router.post("/{space_id}/files", response_model=FileResponse)
async def upload_file(
    space_id: int,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    _, space_user = await spaces_service.get_space(db, user, space_id)
    # one byte past the limit is enough to reject an oversized upload
    data = await file.read(settings.MAX_UPLOAD_BYTES + 1)
    record = await files_service.store_file(db, space_user, file.filename, file.content_type, data)
    add_operation_log(db, user_id=user.id, action="upload_file", space_id=space_id, detail={"file_id": record.id})
    await db.commit()
    return FileResponse.model_validate(record)
