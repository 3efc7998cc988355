from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

logger = structlog.get_logger()


class SNetError(Exception):
    """Base class for errors raised by the service layer."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(SNetError):
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(SNetError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(SNetError):
    status_code = status.HTTP_409_CONFLICT


class InvalidStateError(SNetError):
    status_code = status.HTTP_400_BAD_REQUEST


async def snet_exception_handler(request: Request, exc: SNetError):
    """
    Service-layer errors carry their own status code and a user-facing message.
    """
    logger.info("request_rejected", error=exc.message, status=exc.status_code, path=request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
    )

async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all for unhandled exceptions. The student sees a generic message in
    Vietnamese; the details only go to the log.
    """
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        method=request.method,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Đã xảy ra lỗi. Vui lòng thử lại sau."},
    )

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Keep WWW-Authenticate on 401s from the bearer dependency
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("validation_error", errors=exc.errors(), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Dữ liệu không hợp lệ", "errors": jsonable_encoder(exc.errors())},
    )
