from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

from schemas.file import FileResponse


class AuthorResponse(BaseModel):
    id: int
    first_name: str = ""
    last_name: str = ""


class GroupRef(BaseModel):
    id: int
    name: str


class ReplyResponse(BaseModel):
    id: int
    post_id: int
    body: str
    author: Optional[AuthorResponse] = None
    files: List[FileResponse] = []
    reaction_count: int = 0
    has_reacted: bool = False
    can_edit: bool = False
    created_at: Optional[datetime] = None


class PostResponse(BaseModel):
    id: int
    space_id: int
    body: str
    state: str
    author: Optional[AuthorResponse] = None
    groups: List[GroupRef] = []
    files: List[FileResponse] = []
    reaction_count: int = 0
    has_reacted: bool = False
    can_edit: bool = False
    created_at: Optional[datetime] = None


class RepliesPage(BaseModel):
    replies: List[ReplyResponse]
    has_previous_page: bool


class PostDetailResponse(BaseModel):
    post: PostResponse
    replies: RepliesPage


class CreatePostArgs(BaseModel):
    space_id: int
    body: Optional[str] = None
    group_id: Optional[int] = None
    file_ids: List[int] = []


class PostArgs(BaseModel):
    space_id: int
    post_id: int


class UpdatePostArgs(PostArgs):
    body: Optional[str] = None


class CreateReplyArgs(PostArgs):
    body: Optional[str] = None
    file_ids: List[int] = []


class ReplyArgs(PostArgs):
    reply_id: int


class UpdateReplyArgs(ReplyArgs):
    body: Optional[str] = None
