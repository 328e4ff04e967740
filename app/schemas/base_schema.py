from typing import Generic, TypeVar, Optional
from pydantic import BaseModel

T = TypeVar("T")

class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int

class ApiResponse(BaseModel, Generic[T]):
    success: bool
    data: Optional[T]
    pagination: Optional[Pagination] = None
    message: Optional[str] = None
    errors: Optional[list] = None
    trace_id: str
