from typing import Any


class AppError(Exception):
    code: str = "APP_ERROR"
    message: str = "Application error"
    details: Any | None = None

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        details: Any | None = None,
    ):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        if details is not None:
            self.details = details

        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        return error_payload(self.code, self.message, self.details)


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    message = "Validation error"


class NotFoundError(AppError):
    code = "NOT_FOUND"
    message = "Resource not found"


class PermissionError(AppError):  # type: ignore[override]
    code = "PERMISSION_DENIED"
    message = "Insufficient permissions"


class ConflictError(AppError):
    code = "CONFLICT_ERROR"
    message = "Resource conflict"


class InternalError(AppError):
    code = "INTERNAL_ERROR"
    message = "Internal error"


class ImportFileError(AppError):
    """The import source could not be read at all; no rows were examined."""

    code = "IMPORT_FILE_ERROR"
    message = "Import file could not be read"


def error_payload(
    code: str,
    message: str,
    details: Any | None = None,
) -> dict[str, Any]:
    return {"error": {"code": code, "message": message, "details": details}}
