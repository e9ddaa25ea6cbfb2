from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime


class SpaceResponse(BaseModel):
    id: int
    name: str
    slug: str
    state: str
    setup_state: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SpaceUserResponse(BaseModel):
    id: int
    space_id: int
    user_id: int
    role: str
    first_name: str = ""
    last_name: str = ""

    model_config = ConfigDict(from_attributes=True)


class CreateSpaceArgs(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None


class CompleteSetupStepArgs(BaseModel):
    space_id: int
    state: Optional[str] = None
    is_skipped: bool = False
