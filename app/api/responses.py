# app/api/responses.py
from typing import Any, Optional
from fastapi import Request
from app.schemas.base_schema import ApiResponse, Pagination
from app.services.query_service import PageResult


def ok(
    data: Any,
    message: str,
    request: Optional[Request] = None,
    pagination: Optional[Pagination] = None,
) -> ApiResponse:
    """Wrap a successful response in the standard ApiResponse envelope."""
    return ApiResponse(
        success=True,
        data=data,
        pagination=pagination,
        message=message,
        errors=None,
        trace_id=getattr(request.state, "trace_id", "") if request else "",
    )


def pagination_of(result: PageResult) -> Pagination:
    return Pagination(total=result.total, page=result.page, limit=result.limit, pages=result.pages)


def error_body(message: str, request: Request, errors: Optional[list] = None) -> dict:
    """Error envelope — only a message, never internals."""
    return ApiResponse(
        success=False,
        data=None,
        message=message,
        errors=errors or [message],
        trace_id=getattr(request.state, "trace_id", None) or "",
    ).model_dump()
