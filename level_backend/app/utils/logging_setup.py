import logging

from app.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str | None = None):
    root = logging.getLogger()
    # uvicorn installs its own handlers; only add ours once
    if not any(getattr(h, "_level_handler", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._level_handler = True
        root.addHandler(handler)
    root.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))
