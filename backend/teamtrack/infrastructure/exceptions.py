"""
Error taxonomy and global exception handling for the TeamTrack API.

Every domain failure is a TeamTrackException carrying an HTTP-equivalent
status code, so the same error can be shown as a client-side notification
or rendered as a structured JSON response without leaking stack traces.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from datetime import datetime, timezone
import structlog

logger = structlog.get_logger(__name__)


class TeamTrackException(Exception):
    """Base exception for TeamTrack application errors."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


# ============================================
# VALIDATION ERRORS (recovered locally, never fatal)
# ============================================

class ValidationRejected(TeamTrackException):
    """A mutation was rejected; the store is unchanged."""
    reason: str = "ValidationRejected"

    def __init__(self, message: str, details: dict = None):
        super().__init__(
            message=message,
            status_code=422,
            details={"reason": self.reason, **(details or {})},
        )


class UpdateRejected(ValidationRejected):
    """An EOD update failed validation."""
    def __init__(self, reason, message: str, task_id: str = None):
        # reason is a RejectionReason; kept untyped to avoid a models import cycle
        self.reason = getattr(reason, "value", reason)
        details = {"task_id": task_id} if task_id else None
        super().__init__(message, details)


class IncompleteTaskDefinition(ValidationRejected):
    reason = "IncompleteTaskDefinition"

    def __init__(self, missing: list):
        self.missing = list(missing)
        super().__init__(
            f"Task is missing required fields: {', '.join(self.missing)}",
            {"missing": self.missing},
        )


class DuplicateMember(ValidationRejected):
    reason = "DuplicateMember"

    def __init__(self, name: str):
        super().__init__("Member already exists in roster!", {"member": name})


class MemberNotFound(ValidationRejected):
    reason = "MemberNotFound"

    def __init__(self, name: str):
        super().__init__(f"Member '{name}' is not in the roster", {"member": name})


class ProtectedMember(ValidationRejected):
    reason = "ProtectedMember"

    def __init__(self, name: str):
        super().__init__(f"Member '{name}' cannot be removed", {"member": name})


class EmptyComment(ValidationRejected):
    reason = "EmptyComment"

    def __init__(self):
        super().__init__("Comment text is empty")


class ImportRejected(ValidationRejected):
    """Imported workspace data has the wrong shape; nothing was applied."""
    reason = "ImportRejected"


class InvalidHistory(ValidationRejected):
    """A pushed snapshot contains update histories that break the update rules."""
    reason = "InvalidHistory"

    def __init__(self, violations: dict):
        super().__init__(
            "Snapshot rejected: task update history violates update rules",
            {"violations": violations},
        )


class TaskNotFound(TeamTrackException):
    def __init__(self, task_id: str):
        super().__init__(
            message=f"Task '{task_id}' not found",
            status_code=404,
            details={"task_id": task_id},
        )


# ============================================
# AUTHORIZATION ERRORS
# ============================================

class AuthorizationError(TeamTrackException):
    def __init__(self, message: str, details: dict = None):
        super().__init__(message=message, status_code=403, details=details)


class InvalidPasscode(AuthorizationError):
    def __init__(self, message: str = "Invalid Passcode"):
        super().__init__(message)


class InsufficientRole(AuthorizationError):
    def __init__(self, action: str):
        super().__init__(
            f"Lead access is required to {action}",
            details={"action": action},
        )


# ============================================
# TRANSPORT / STORAGE / STARTUP
# ============================================

class SyncTransportError(TeamTrackException):
    """Fetch or push against the remote document failed."""
    def __init__(self, operation: str, message: str):
        super().__init__(
            message=message,
            status_code=502,
            details={"operation": operation},
        )


class StorageError(TeamTrackException):
    """The persisted document could not be read or written."""
    def __init__(self, message: str, path: str = None):
        super().__init__(
            message=message,
            status_code=500,
            details={"path": path} if path else None,
        )


class StartupError(RuntimeError):
    """A critical startup check failed; the server must not run half-configured."""


async def _teamtrack_exception_handler(request: Request, exc: TeamTrackException) -> JSONResponse:
    """Handle TeamTrack application exceptions."""
    error_id = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")

    logger.warning(
        "teamtrack_exception",
        error_id=error_id,
        error_type=type(exc).__name__,
        message=exc.message,
        path=request.url.path,
        method=request.method,
        details=exc.details,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.message,
                "type": type(exc).__name__,
                "error_id": error_id,
                "details": exc.details,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        },
    )


async def _global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unhandled exceptions."""
    error_id = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")

    logger.error(
        "unhandled_exception",
        error_id=error_id,
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=exc,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "message": "Internal server error",
                "type": "InternalServerError",
                "error_id": error_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        },
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors with structured detail."""
    logger.warning(
        "validation_error",
        path=request.url.path,
        method=request.method,
        errors=exc.errors(),
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "message": "Validation error",
                "type": "ValidationError",
                "details": jsonable_errors(exc.errors()),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        },
    )


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.detail,
                "type": "HTTPException",
                "status_code": exc.status_code,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        },
    )


def jsonable_errors(errors: list) -> list:
    """Strip non-serialisable context (e.g. exception objects) from pydantic errors."""
    return [
        {"loc": list(e.get("loc", ())), "msg": str(e.get("msg", "")), "type": e.get("type")}
        for e in errors
    ]


def register_exception_handlers(app: FastAPI):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(TeamTrackException, _teamtrack_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _global_exception_handler)
    logger.info("exception_handlers_registered")
