from typing import Any, Dict, Optional, TypeVar, Generic
from fastapi import Request
from pydantic import BaseModel

from nanoedit.schemas.errors import ErrorCode, ERROR_MESSAGES


T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Standardized API response"""

    success: bool
    data: Optional[T] = None
    message: Optional[str] = None
    error: Optional[str] = None


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


def success_response(
    data: Any = None, message: str = None, request: Request = None
) -> dict:
    """Auto-serialize Pydantic models"""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list) and data and isinstance(data[0], BaseModel):
        data = [item.model_dump(mode="json") for item in data]

    response = {
        "success": True,
        "data": data,
        "message": message,
    }
    if request is not None:
        response["request_id"] = getattr(request.state, "request_id", None)
    return response


def error_response(
    error: Optional[str] = None,
    code: Optional[ErrorCode] = None,
    details: Any = None,
) -> Dict:
    """Create a standardized error response"""
    if error is None and code is not None:
        error = ERROR_MESSAGES.get(code, code.value)
    response = {"success": False, "error": error}
    if code is not None:
        response["code"] = code.value
    if details is not None:
        response["details"] = details
    return response


def build_pagination(total: int, page: int, limit: int) -> Pagination:
    """Pagination block shared by the history listings"""
    pages = (total + limit - 1) // limit if limit > 0 else 0
    return Pagination(total=total, page=page, limit=limit, pages=pages)
