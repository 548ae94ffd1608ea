from datetime import datetime

from pydantic import BaseModel

from physio_stock.models.stock_movement import MovementType
from physio_stock.schemas.item import ItemRead


class MovementCreate(BaseModel):
    movement_type: MovementType
    quantity: int
    current_stock: int
    expected_version: int | None = None
    confirmed: bool = False


class UndoRequest(BaseModel):
    confirmed: bool = False


class MovementRead(BaseModel):
    id: int
    item_id: int
    item_name: str | None = None
    movement_type: MovementType
    quantity: int
    reversal_of_id: int | None = None
    is_reversed: bool = False
    created_at: datetime


class MovementResult(BaseModel):
    new_stock: int
    item: ItemRead
    movement: MovementRead


class UndoResult(BaseModel):
    new_stock: int
    reversed_movement_id: int
    item: ItemRead
    movement: MovementRead
