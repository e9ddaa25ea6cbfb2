from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from datetime import datetime


class GroupResponse(BaseModel):
    id: int
    space_id: int
    name: str
    description: Optional[str] = None
    is_private: bool = False
    state: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CreateGroupArgs(BaseModel):
    space_id: int
    name: Optional[str] = None
    description: Optional[str] = None
    is_private: bool = False


class UpdateGroupArgs(BaseModel):
    space_id: int
    group_id: int
    name: Optional[str] = None
    description: Optional[str] = None
    is_private: Optional[bool] = None


class BulkCreateGroupsArgs(BaseModel):
    space_id: int
    names: List[str] = []
