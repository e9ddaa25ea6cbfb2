import json
import logging

from models.logs import OperationLog

logger = logging.getLogger("level.audit")


def add_operation_log(
    db,
    *,
    user_id: int | None,
    action: str | None,
    space_id: int | None = None,
    detail=None,
):
    if not user_id or not action:
        return
    detail_value = detail
    if detail is not None and not isinstance(detail, str):
        try:
            detail_value = json.dumps(detail, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            detail_value = str(detail)
    logger.debug("OPERATION action=%s user=%s space=%s", action, user_id, space_id)
    db.add(OperationLog(
        user_id=user_id,
        action=action,
        detail=detail_value,
        space_id=space_id,
    ))
