import logging
import os

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.api import auth as auth_api
from app.api import mutations as mutations_api
from app.api import posts as posts_api
from app.api import upload as upload_api
from app.api.error_handlers import register_error_handlers
from app.config import settings
from app.database import AsyncSessionLocal, create_tables
from app.errors import LevelError
from app.security import extract_auth_token, load_user
from app.services import spaces as spaces_service
from app.utils.logging_setup import setup_logging
from app.ws import event_manager

logger = logging.getLogger("level.main")

app = FastAPI(title="Level")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(auth_api.router, prefix="/api/auth", tags=["auth"])
app.include_router(mutations_api.router, prefix="/api/mutations", tags=["mutations"])
app.include_router(posts_api.router, prefix="/api/spaces", tags=["posts"])
app.include_router(upload_api.router, prefix="/api/spaces", tags=["files"])


@app.on_event("startup")
async def startup():
    setup_logging()
    await create_tables()
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    app.mount(settings.UPLOAD_URL_PREFIX, StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")
    logger.info("level started host=%s port=%s", settings.HOST, settings.PORT)


@app.get("/")
async def root():
    return {"message": "Level is running"}


@app.websocket("/ws/space/{space_id}")
async def websocket_space_events(websocket: WebSocket, space_id: int):
    # subscription channel only; anything the client sends is ignored
    async with AsyncSessionLocal() as session:
        try:
            user = await load_user(session, extract_auth_token(websocket))
            await spaces_service.get_space(session, user, space_id)
        except LevelError as e:
            logger.info("subscription refused space=%s reason=%s", space_id, e.detail)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
    await event_manager.connect(space_id, websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        event_manager.disconnect(space_id, websocket)
