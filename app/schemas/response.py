"""
Response envelope schemas and helpers

Every endpoint answers with the same envelope:
success -> {"success": true, "status": "success", "message", "data", "timestamp"}
warning -> same shape with status "warning" and empty data (nothing found)
error   -> {"success": false, "status": "error", "error": {...}, "timestamp"}
"""

from pydantic import BaseModel, Field
from typing import Any, Optional, Dict, List, Generic, TypeVar
from datetime import datetime, timezone

T = TypeVar('T')


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SuccessResponse(BaseModel, Generic[T]):
    """Generic success response"""
    success: bool = True
    status: str = "success"
    message: str = "Operation successful"
    data: Optional[T] = None
    timestamp: datetime = Field(default_factory=_now)


class ErrorDetail(BaseModel):
    """Error detail schema"""
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Generic error response"""
    success: bool = False
    status: str = "error"
    error: ErrorDetail
    timestamp: datetime = Field(default_factory=_now)


class PaginationMeta(BaseModel):
    """Pagination metadata"""
    page: int = Field(..., ge=1)
    per_page: int = Field(..., ge=1, le=100)
    total: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)
    has_next: bool = False
    has_prev: bool = False

    @classmethod
    def build(cls, page: int, per_page: int, total: int) -> "PaginationMeta":
        total_pages = (total + per_page - 1) // per_page
        return cls(
            page=page,
            per_page=per_page,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class PaginatedData(BaseModel, Generic[T]):
    """List payload with pagination metadata"""
    items: List[T]
    pagination: PaginationMeta


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    timestamp: datetime = Field(default_factory=_now)
    services: Optional[Dict[str, str]] = None


def success_response(data: Any = None, message: str = "Operation successful") -> Dict[str, Any]:
    return SuccessResponse[Any](data=data, message=message).model_dump(mode="json")


def warning_response(message: str, data: Any = None) -> Dict[str, Any]:
    return SuccessResponse[Any](
        status="warning",
        message=message,
        data=[] if data is None else data,
    ).model_dump(mode="json")


def error_response(
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    return ErrorResponse(
        error=ErrorDetail(code=code, message=message, details=details or {})
    ).model_dump(mode="json")
