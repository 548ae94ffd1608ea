from typing import Generic, TypeVar

from pydantic import BaseModel


T = TypeVar("T")


class QueryResponse(BaseModel, Generic[T]):
    data: T | None = None
    is_loading: bool = False
    error: str | None = None
    is_stale: bool = False
