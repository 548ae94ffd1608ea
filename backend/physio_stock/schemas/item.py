from datetime import datetime

from pydantic import BaseModel

from physio_stock.schemas.category import CategoryRead


class ItemCreate(BaseModel):
    category_id: int
    name: str


class ItemUpdate(BaseModel):
    name: str


class ItemRead(BaseModel):
    id: int
    category_id: int
    name: str
    stock: int
    version: int
    stock_status: str
    created_at: datetime
    updated_at: datetime


class SearchGroup(BaseModel):
    category: CategoryRead
    items: list[ItemRead]
    category_matched: bool = False
