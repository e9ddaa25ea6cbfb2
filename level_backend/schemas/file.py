from pydantic import BaseModel, ConfigDict
from typing import Optional


class FileResponse(BaseModel):
    id: int
    filename: str
    content_type: Optional[str] = None
    size: int
    url: str

    model_config = ConfigDict(from_attributes=True)
