"""Owner-scoped access to the three inventory tables.

Rows travel as plain dicts so callers never hold ORM state between
requests. Every call is implicitly filtered by the signed-in owner.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Table, delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from physio_stock.core.errors import NotFound, StaleStock, TransportError
from physio_stock.models.category import Category
from physio_stock.models.item import Item
from physio_stock.models.stock_movement import StockMovement


logger = logging.getLogger(__name__)

Row = dict[str, Any]

TABLES = {
    "categories": Category,
    "items": Item,
    "stock_movements": StockMovement,
}


class Gateway(ABC):
    owner_id: int

    @abstractmethod
    def select(
        self,
        table: str,
        *,
        filters: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        ...

    @abstractmethod
    def insert(self, table: str, values: Mapping[str, Any]) -> Row:
        ...

    @abstractmethod
    def update(self, table: str, values: Mapping[str, Any], *, filters: Mapping[str, Any]) -> list[Row]:
        ...

    @abstractmethod
    def delete(self, table: str, *, filters: Mapping[str, Any]) -> int:
        ...

    @abstractmethod
    def apply_stock_change(
        self,
        *,
        item_id: int,
        expected_stock: int,
        new_stock: int,
        movement: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> tuple[Row, Row]:
        """Set the item's stock and append the movement in one transaction.

        The stock update only lands if the stored stock (and version, when
        given) still equals what the caller observed.
        """

    def select_one(self, table: str, *, filters: Mapping[str, Any]) -> Row | None:
        rows = self.select(table, filters=filters, limit=1)
        return rows[0] if rows else None


def _as_utc(value: Any) -> Any:
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlGateway(Gateway):
    def __init__(self, db: Session, owner_id: int) -> None:
        self.db = db
        self.owner_id = owner_id

    def _table(self, name: str) -> Table:
        try:
            return TABLES[name].__table__
        except KeyError:
            raise ValueError(f"Unknown table: {name}") from None

    def _where(self, table: Table, filters: Mapping[str, Any] | None) -> list:
        conditions = [table.c.owner_id == self.owner_id]
        for key, value in (filters or {}).items():
            if key not in table.c:
                raise ValueError(f"Unknown column: {table.name}.{key}")
            column = table.c[key]
            conditions.append(column.is_(None) if value is None else column == value)
        return conditions

    def _row(self, table: Table, source: Any) -> Row:
        if isinstance(source, Mapping):
            return {key: _as_utc(value) for key, value in source.items()}
        return {column.key: _as_utc(getattr(source, column.key)) for column in table.columns}

    @contextmanager
    def _transport(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            message = str(getattr(exc, "orig", None) or exc)
            logger.error("%s failed: %s", action, message)
            raise TransportError(message) from exc

    def select(
        self,
        table: str,
        *,
        filters: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        source = self._table(table)
        statement = select(source).where(*self._where(source, filters))
        if order_by:
            if order_by not in source.c:
                raise ValueError(f"Unknown column: {table}.{order_by}")
            column = source.c[order_by]
            statement = statement.order_by(column.desc() if descending else column.asc())
            # Stable order for rows sharing a timestamp or name.
            statement = statement.order_by(source.c.id.desc() if descending else source.c.id.asc())
        if limit is not None:
            statement = statement.limit(limit)

        with self._transport(f"select {table}"):
            rows = self.db.execute(statement).mappings().all()
        return [self._row(source, row) for row in rows]

    def insert(self, table: str, values: Mapping[str, Any]) -> Row:
        model = TABLES.get(table)
        if model is None:
            raise ValueError(f"Unknown table: {table}")

        obj = model(**{**values, "owner_id": self.owner_id})
        with self._transport(f"insert {table}"):
            self.db.add(obj)
            self.db.commit()
        return self._row(model.__table__, obj)

    def update(self, table: str, values: Mapping[str, Any], *, filters: Mapping[str, Any]) -> list[Row]:
        source = self._table(table)
        conditions = self._where(source, filters)
        with self._transport(f"update {table}"):
            self.db.execute(update(source).where(*conditions).values(**values))
            self.db.commit()
        return self.select(table, filters=filters)

    def delete(self, table: str, *, filters: Mapping[str, Any]) -> int:
        source = self._table(table)
        with self._transport(f"delete {table}"):
            result = self.db.execute(delete(source).where(*self._where(source, filters)))
            self.db.commit()
        return result.rowcount

    def apply_stock_change(
        self,
        *,
        item_id: int,
        expected_stock: int,
        new_stock: int,
        movement: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> tuple[Row, Row]:
        items = self._table("items")
        conditions = [items.c.id == item_id, items.c.owner_id == self.owner_id, items.c.stock == expected_stock]
        if expected_version is not None:
            conditions.append(items.c.version == expected_version)

        record = StockMovement(**{**movement, "item_id": item_id, "owner_id": self.owner_id})
        with self._transport("apply stock change"):
            result = self.db.execute(
                update(items)
                .where(*conditions)
                .values(stock=new_stock, version=items.c.version + 1, updated_at=datetime.now(timezone.utc))
            )
            item = None
            if result.rowcount != 1:
                self.db.rollback()
            else:
                self.db.add(record)
                self.db.flush()
                # Read inside the transaction so the row is ours, not a later writer's.
                item = self._row(items, self.db.execute(select(items).where(items.c.id == item_id)).mappings().one())
                self.db.commit()

        if item is None:
            if self.select_one("items", filters={"id": item_id}) is None:
                raise NotFound("Ürün bulunamadı")
            raise StaleStock()

        return item, self._row(StockMovement.__table__, record)
