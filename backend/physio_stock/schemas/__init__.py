from physio_stock.schemas.auth import LoginRequest, MessageResponse, RegisterRequest, TokenResponse
from physio_stock.schemas.category import CategoryCreate, CategoryRead, CategoryUpdate
from physio_stock.schemas.item import ItemCreate, ItemRead, ItemUpdate, SearchGroup
from physio_stock.schemas.movement import (
    MovementCreate,
    MovementRead,
    MovementResult,
    UndoRequest,
    UndoResult,
)
from physio_stock.schemas.query import QueryResponse
from physio_stock.schemas.user import UserRead

__all__ = [
    "CategoryCreate",
    "CategoryRead",
    "CategoryUpdate",
    "ItemCreate",
    "ItemRead",
    "ItemUpdate",
    "LoginRequest",
    "MessageResponse",
    "MovementCreate",
    "MovementRead",
    "MovementResult",
    "QueryResponse",
    "RegisterRequest",
    "SearchGroup",
    "TokenResponse",
    "UndoRequest",
    "UndoResult",
    "UserRead",
]
