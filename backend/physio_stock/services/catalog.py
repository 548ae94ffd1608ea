from __future__ import annotations

import logging
from datetime import datetime, timezone

from physio_stock.core.errors import ActionCancelled, NotFound, ValidationError
from physio_stock.services.gateway import Gateway, Row
from physio_stock.services.ledger import Confirm, PendingAction


logger = logging.getLogger(__name__)

LOW_STOCK_THRESHOLD = 5


def clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("İsim boş olamaz")
    return cleaned


def stock_status(stock: int, low_threshold: int = LOW_STOCK_THRESHOLD) -> str:
    if stock <= 0:
        return "out"
    if stock < low_threshold:
        return "low"
    return "ok"


class CatalogService:
    def __init__(self, gateway: Gateway, confirm: Confirm | None = None) -> None:
        self.gateway = gateway
        self.confirm = confirm

    def _confirmed(self, action: PendingAction) -> None:
        if self.confirm is not None and not self.confirm(action):
            raise ActionCancelled()

    def _get(self, table: str, row_id: int, message: str) -> Row:
        row = self.gateway.select_one(table, filters={"id": row_id})
        if row is None:
            raise NotFound(message)
        return row

    def _touch(self, table: str, row_id: int, name: str, message: str) -> Row:
        rows = self.gateway.update(
            table,
            {"name": name, "updated_at": datetime.now(timezone.utc)},
            filters={"id": row_id},
        )
        if not rows:
            raise NotFound(message)
        return rows[0]

    # Categories

    def list_categories(self) -> list[Row]:
        return self.gateway.select("categories", order_by="name")

    def create_category(self, name: str) -> tuple[Row, tuple[str, ...]]:
        row = self.gateway.insert("categories", {"name": clean_name(name)})
        logger.info("Category %s created", row["id"])
        return row, ("categories",)

    def rename_category(self, category_id: int, name: str) -> tuple[Row, tuple[str, ...]]:
        row = self._touch("categories", category_id, clean_name(name), "Kategori bulunamadı")
        return row, ("categories",)

    def delete_category(self, category_id: int) -> tuple[str, ...]:
        category = self._get("categories", category_id, "Kategori bulunamadı")
        self._confirmed(
            PendingAction(
                kind="delete_category",
                message=f'"{category["name"]}" kategorisi ve tüm ürünleri silinsin mi?',
                target_id=category_id,
            )
        )
        # Items and their movements go with it through the foreign-key cascade.
        self.gateway.delete("categories", filters={"id": category_id})
        logger.info("Category %s deleted", category_id)
        return ("categories", "items", "stock_movements")

    # Items

    def list_items(self, category_id: int | None = None) -> list[Row]:
        filters = {"category_id": category_id} if category_id is not None else None
        return self.gateway.select("items", filters=filters, order_by="name")

    def create_item(self, category_id: int, name: str) -> tuple[Row, tuple[str, ...]]:
        name = clean_name(name)
        self._get("categories", category_id, "Kategori bulunamadı")
        row = self.gateway.insert("items", {"name": name, "category_id": category_id, "stock": 0})
        logger.info("Item %s created in category %s", row["id"], category_id)
        return row, ("items",)

    def rename_item(self, item_id: int, name: str) -> tuple[Row, tuple[str, ...]]:
        row = self._touch("items", item_id, clean_name(name), "Ürün bulunamadı")
        return row, ("items",)

    def delete_item(self, item_id: int) -> tuple[str, ...]:
        item = self._get("items", item_id, "Ürün bulunamadı")
        self._confirmed(
            PendingAction(kind="delete_item", message=f'"{item["name"]}" ürünü silinsin mi?', target_id=item_id)
        )
        self.gateway.delete("items", filters={"id": item_id})
        logger.info("Item %s deleted", item_id)
        return ("items", "stock_movements")
