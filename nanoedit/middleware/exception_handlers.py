"""
nanoedit/middleware/exception_handlers.py

Global exception handler middleware
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from sqlalchemy.exc import SQLAlchemyError
import logging
import traceback
import uuid

from nanoedit.schemas.errors import ErrorCode
from nanoedit.schemas.response import error_response

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or "unknown"


async def exception_handler_middleware(request: Request, call_next):
    """Turn anything that escapes a route into the error envelope"""

    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id

    try:
        return await call_next(request)

    except SQLAlchemyError as exc:
        logger.error(
            f"Database error: {str(exc)}",
            extra={
                "request_id": request_id,
                "extra": {"traceback": traceback.format_exc()},
            },
        )
        content = error_response(code=ErrorCode.DATABASE_ERROR)

    except Exception as exc:
        logger.error(
            f"Unexpected error: {str(exc)}",
            extra={
                "request_id": request_id,
                "extra": {"traceback": traceback.format_exc()},
            },
        )
        content = error_response(code=ErrorCode.INTERNAL_ERROR)

    content["request_id"] = request_id
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
        headers={"X-Request-ID": request_id},
    )


def http_exception_handler(request: Request, exc: HTTPException):
    """HTTPExceptions keep their status; a `code` attribute is passed on"""
    code = getattr(exc, "code", None)
    content = error_response(error=str(exc.detail), code=code)
    content["request_id"] = _request_id(request)
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


def validation_exception_handler(
    request: Request, exc: RequestValidationError
):
    """Query string and body validation failures are client errors"""
    logger.warning(
        f"Validation error: {exc.errors()}",
        extra={"request_id": _request_id(request)},
    )
    content = error_response(
        code=ErrorCode.VALIDATION_ERROR,
        details=jsonable_errors(exc),
    )
    content["request_id"] = _request_id(request)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=content,
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
        for err in exc.errors()
    ]
