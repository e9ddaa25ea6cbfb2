import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.errors import ChangesetError, LevelError
from app.mutations import format_errors

logger = logging.getLogger("level.api.errors")


def register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(LevelError)
    async def level_error_handler(request: Request, exc: LevelError):
        logger.warning("%s on %s: %s", exc.code, request.url.path, exc.detail)
        content = exc.to_response()
        if isinstance(exc, ChangesetError):
            content["errors"] = format_errors(exc.changeset)
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "detail": "Invalid request data",
                "code": "BAD_REQUEST",
                "errors": [
                    {
                        "attribute": ".".join(str(loc) for loc in e.get("loc", ())),
                        "message": e.get("msg", ""),
                    }
                    for e in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "An unexpected error occurred", "code": "INTERNAL_ERROR"},
        )
