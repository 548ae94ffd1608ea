from physio_stock.models.category import Category
from physio_stock.models.item import Item
from physio_stock.models.stock_movement import MovementType, StockMovement
from physio_stock.models.user import User

__all__ = [
    "Category",
    "Item",
    "MovementType",
    "StockMovement",
    "User",
]
