import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.serializers import serialize_payload
from app.database import get_db
from app.errors import NotFoundError
from app.mutations import RESOLVERS, MutationContext
from app.security import get_current_user
from app.services import spaces as spaces_service
from models.user import User
from schemas.group import BulkCreateGroupsArgs, CreateGroupArgs, UpdateGroupArgs
from schemas.post import (
    CreatePostArgs,
    CreateReplyArgs,
    PostArgs,
    ReplyArgs,
    UpdatePostArgs,
    UpdateReplyArgs,
)
from schemas.space import CompleteSetupStepArgs, CreateSpaceArgs

router = APIRouter()
logger = logging.getLogger("level.api.mutations")

ARG_SCHEMAS = {
    "createSpace": CreateSpaceArgs,
    "createGroup": CreateGroupArgs,
    "updateGroup": UpdateGroupArgs,
    "bulkCreateGroups": BulkCreateGroupsArgs,
    "createPost": CreatePostArgs,
    "completeSetupStep": CompleteSetupStepArgs,
    "updatePost": UpdatePostArgs,
    "closePost": PostArgs,
    "reopenPost": PostArgs,
    "deletePost": PostArgs,
    "createReply": CreateReplyArgs,
    "updateReply": UpdateReplyArgs,
    "deleteReply": ReplyArgs,
    "createPostReaction": PostArgs,
    "deletePostReaction": PostArgs,
    "createReplyReaction": ReplyArgs,
    "deleteReplyReaction": ReplyArgs,
}


async def _read_args(request: Request, name: str) -> dict:
    raw = await request.body()
    try:
        body = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        raise RequestValidationError([{"loc": ("body",), "msg": "Invalid JSON", "type": "json_invalid"}])
    if not isinstance(body, dict):
        raise RequestValidationError([{"loc": ("body",), "msg": "Expected an object", "type": "dict_type"}])
    try:
        args = ARG_SCHEMAS[name].model_validate(body)
    except ValidationError as e:
        raise RequestValidationError(e.errors())
    return args.model_dump(exclude_unset=True)


@router.post("/{name}")
async def run_mutation(
    name: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    resolver = RESOLVERS.get(name)
    if resolver is None:
        raise NotFoundError(f"Unknown mutation {name}")
    args = await _read_args(request, name)
    payload = await resolver(db, args, MutationContext(current_user=user))

    space_user = None
    if any(payload.get(k) is not None for k in ("post", "reply")):
        _, space_user = await spaces_service.get_space(db, user, args["space_id"])
    return await serialize_payload(db, space_user, payload)
