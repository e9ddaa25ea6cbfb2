"""Exceptions raised by the domain modules.

``ChangesetError`` is the soft failure: mutations turn it into a
``success: false`` payload. Everything else is a hard failure and reaches the
HTTP layer through ``register_error_handlers``.
"""


class LevelError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_detail = "An unexpected error occurred"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_response(self) -> dict:
        return {"detail": self.detail, "code": self.code}


class NotFoundError(LevelError):
    status_code = 404
    code = "NOT_FOUND"
    default_detail = "Not found"


class ForbiddenError(LevelError):
    status_code = 403
    code = "FORBIDDEN"
    default_detail = "You are not allowed to do that"


class UnauthorizedError(LevelError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_detail = "Authentication required"


class ChangesetError(LevelError):
    status_code = 422
    code = "VALIDATION_ERROR"
    default_detail = "Validation failed"

    def __init__(self, changeset, detail: str | None = None):
        self.changeset = changeset
        super().__init__(detail)
