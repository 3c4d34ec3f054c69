from typing import Generic, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class APIError(BaseModel):
    code: str
    message: str
    details: dict | None = None


class APIResponse(BaseModel, Generic[T]):
    success: bool
    data: T | None = None
    error: APIError | None = None


class PageMeta(BaseModel):
    total: int
    pages: int
    page: int
    limit: int


class Page(BaseModel, Generic[T]):
    data: list[T]
    meta: PageMeta
