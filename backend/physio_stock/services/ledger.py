"""Stock ledger: the item's stock counter plus its append-only movement log.

Invariant: for every item, ``stock`` equals the signed sum of its movement
quantities (PURCHASE adds, SALE subtracts) and never drops below zero.
Both writes of a stock change go through ``Gateway.apply_stock_change`` so
they commit together, and the stock update is conditional on the value the
caller observed.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from physio_stock.core.errors import (
    ActionCancelled,
    AlreadyReversed,
    InsufficientStock,
    NotFound,
    ValidationError,
)
from physio_stock.models.stock_movement import MovementType
from physio_stock.services.gateway import Gateway, Row


logger = logging.getLogger(__name__)

STOCK_RESOURCES = ("items", "stock_movements")
LARGE_QUANTITY = 50

ACTION_LABELS = {
    MovementType.PURCHASE: "alım",
    MovementType.SALE: "satış",
}


@dataclass(frozen=True)
class PendingAction:
    kind: str
    message: str
    target_id: int
    movement_type: MovementType | None = None
    quantity: int | None = None


Confirm = Callable[[PendingAction], bool]


@dataclass(frozen=True)
class LedgerResult:
    new_stock: int
    item: Row
    movement: Row
    invalidates: tuple[str, ...] = STOCK_RESOURCES


@dataclass(frozen=True)
class UndoResult:
    new_stock: int
    reversed_movement_id: int
    item: Row
    movement: Row
    invalidates: tuple[str, ...] = STOCK_RESOURCES


def _positive_int(value: object, message: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(message)
    return value


def next_stock(current_stock: int, quantity: int, movement_type: MovementType) -> int:
    return current_stock + movement_type.sign * quantity


def signed_total(movements: list[Row]) -> int:
    return sum(MovementType(row["movement_type"]).sign * row["quantity"] for row in movements)


class StockLedger:
    def __init__(
        self,
        gateway: Gateway,
        confirm: Confirm | None = None,
        large_quantity: int = LARGE_QUANTITY,
    ) -> None:
        self.gateway = gateway
        self.confirm = confirm
        self.large_quantity = large_quantity

    def _confirmed(self, action: PendingAction) -> None:
        if self.confirm is not None and not self.confirm(action):
            logger.info("Owner %s declined %s on item %s", self.gateway.owner_id, action.kind, action.target_id)
            raise ActionCancelled()

    def apply_movement(
        self,
        item_id: int,
        quantity: int,
        movement_type: MovementType | str,
        current_stock: int,
        expected_version: int | None = None,
    ) -> LedgerResult:
        """Record a purchase or sale against the stock the caller last saw.

        ``current_stock`` is not re-read here; the write is rejected with
        ``StaleStock`` if the stored value moved in the meantime.
        """
        quantity = _positive_int(quantity, "Miktar 0'dan büyük olmalıdır")
        if isinstance(current_stock, bool) or not isinstance(current_stock, int) or current_stock < 0:
            raise ValidationError("Geçersiz stok değeri")
        try:
            movement_type = MovementType(movement_type)
        except ValueError:
            raise ValidationError("Geçersiz işlem tipi") from None

        new_stock = next_stock(current_stock, quantity, movement_type)
        if new_stock < 0:
            logger.warning(
                "Rejected sale of %s on item %s with stock %s", quantity, item_id, current_stock
            )
            raise InsufficientStock(f"Yetersiz stok! Mevcut: {current_stock}, Satılmak istenen: {quantity}")

        if quantity >= self.large_quantity:
            self._confirmed(
                PendingAction(
                    kind="movement",
                    message=f"{quantity} adet {ACTION_LABELS[movement_type]} işlemi yapılacak. Onaylıyor musunuz?",
                    target_id=item_id,
                    movement_type=movement_type,
                    quantity=quantity,
                )
            )

        item, movement = self.gateway.apply_stock_change(
            item_id=item_id,
            expected_stock=current_stock,
            new_stock=new_stock,
            movement={"movement_type": movement_type.value, "quantity": quantity},
            expected_version=expected_version,
        )
        logger.info(
            "Item %s: %s %s, stock %s -> %s", item_id, movement_type.value, quantity, current_stock, new_stock
        )
        return LedgerResult(new_stock=new_stock, item=item, movement=movement)

    def undo_movement(
        self,
        movement_id: int,
        item_id: int | None = None,
        movement_type: MovementType | str | None = None,
        quantity: int | None = None,
    ) -> UndoResult:
        """Append the opposite movement and revert its effect on the current stock."""
        filters: dict = {"id": movement_id}
        if item_id is not None:
            filters["item_id"] = item_id
        original = self.gateway.select_one("stock_movements", filters=filters)
        if original is None:
            raise NotFound("Hareket bulunamadı")

        original_type = MovementType(original["movement_type"])
        if movement_type is not None and movement_type != original_type.value:
            raise ValidationError("Hareket bilgileri uyuşmuyor")
        if quantity is not None and quantity != original["quantity"]:
            raise ValidationError("Hareket bilgileri uyuşmuyor")

        if self.gateway.select_one("stock_movements", filters={"reversal_of_id": movement_id}) is not None:
            raise AlreadyReversed()

        item = self.gateway.select_one("items", filters={"id": original["item_id"]})
        if item is None:
            raise NotFound("Ürün bulunamadı")

        self._confirmed(
            PendingAction(
                kind="undo",
                message=(
                    f"Bu {ACTION_LABELS[original_type]} işlemini geri almak istiyor musunuz?\n\n"
                    f"Ürün: {item['name']}\nMiktar: {original['quantity']}"
                ),
                target_id=item["id"],
                movement_type=original_type,
                quantity=original["quantity"],
            )
        )

        reverse_type = original_type.reverse
        new_stock = next_stock(item["stock"], original["quantity"], reverse_type)
        if new_stock < 0:
            logger.warning("Rejected undo of movement %s: stock would be %s", movement_id, new_stock)
            raise InsufficientStock("Geri alma işlemi başarısız: Stok negatif olamaz")

        updated, movement = self.gateway.apply_stock_change(
            item_id=item["id"],
            expected_stock=item["stock"],
            new_stock=new_stock,
            movement={
                "movement_type": reverse_type.value,
                "quantity": original["quantity"],
                "reversal_of_id": movement_id,
            },
            expected_version=item["version"],
        )
        logger.info("Movement %s reversed by %s, stock %s -> %s", movement_id, movement["id"], item["stock"], new_stock)
        return UndoResult(
            new_stock=new_stock,
            reversed_movement_id=movement_id,
            item=updated,
            movement=movement,
        )
