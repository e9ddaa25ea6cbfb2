import logging
from typing import Dict, Set

from fastapi import WebSocket

logger = logging.getLogger("level.ws")


class ConnectionManager:
    def __init__(self):
        self.active: Dict[int, Set[WebSocket]] = {}

    async def connect(self, space_id: int, websocket: WebSocket):
        await websocket.accept()
        self.active.setdefault(space_id, set()).add(websocket)

    def disconnect(self, space_id: int, websocket: WebSocket):
        sockets = self.active.get(space_id)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            self.active.pop(space_id, None)

    async def broadcast(self, space_id: int, message: dict):
        for ws in list(self.active.get(space_id, set())):
            try:
                await ws.send_json(message)
            except Exception:
                logger.info("dropping subscriber space=%s after failed send", space_id)
                self.disconnect(space_id, ws)


event_manager = ConnectionManager()
