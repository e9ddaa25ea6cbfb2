import logging
from datetime import datetime, timedelta, timezone

from fastapi import Depends, Request
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.errors import UnauthorizedError
from models.user import User

logger = logging.getLogger("level.security")


def _mask(value) -> str:
    value = str(value or "").strip()
    if not value:
        return "-"
    if len(value) <= 8:
        return value
    return f"{value[:4]}...{value[-4:]}"


def _audit_auth_failure(request: Request | None, reason: str, *, token_present: bool) -> None:
    if not request:
        logger.warning("AUTH_DENY reason=%s", reason)
        return
    path = getattr(getattr(request, "url", None), "path", "-")
    method = getattr(request, "method", "-")
    client = getattr(request, "client", None)
    ip = getattr(client, "host", "-") if client else "-"
    logger.warning(
        "AUTH_DENY reason=%s method=%s path=%s ip=%s token_present=%s",
        reason,
        method,
        path,
        ip,
        int(bool(token_present)),
    )


def create_access_token(user_id: int, *, expires_minutes: int | None = None) -> str:
    expires = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes or settings.JWT_TTL_MINUTES)
    return jwt.encode({"sub": str(user_id), "exp": expires}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def extract_auth_token(request) -> str | None:
    headers = getattr(request, "headers", None)
    if headers:
        raw = (headers.get("authorization") or "").strip()
        if raw.lower().startswith("bearer "):
            token = raw.split(" ", 1)[1].strip()
            if token:
                return token
    # websockets cannot set headers from the browser
    query = getattr(request, "query_params", None)
    if query:
        token = (query.get("token") or "").strip()
        if token:
            return token
    return None


def decode_user_id(token: str | None, request: Request | None = None) -> int:
    if not token:
        _audit_auth_failure(request, "missing_token", token_present=False)
        raise UnauthorizedError("Authentication required")
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        _audit_auth_failure(request, "invalid_token", token_present=True)
        raise UnauthorizedError("Session expired")
    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError):
        _audit_auth_failure(request, "token_missing_sub", token_present=True)
        raise UnauthorizedError("Session expired")


async def load_user(db: AsyncSession, token: str | None, request: Request | None = None) -> User:
    user_id = decode_user_id(token, request)
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if not user:
        _audit_auth_failure(request, "unknown_user", token_present=True)
        logger.info("AUTH_DENY user=%s not found", _mask(user_id))
        raise UnauthorizedError("Session expired")
    return user


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    return await load_user(db, extract_auth_token(request), request)
