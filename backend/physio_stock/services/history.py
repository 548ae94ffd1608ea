"""Client-side views over already-fetched rows: date buckets, search and CSV."""
from __future__ import annotations

import calendar
import csv
import enum
import io
from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

from physio_stock.core.config import get_settings
from physio_stock.models.stock_movement import MovementType
from physio_stock.services.gateway import Row


CSV_HEADERS = ("Tarih", "Ürün", "İşlem", "Miktar")
ACTION_NAMES = {
    MovementType.PURCHASE: "Alım",
    MovementType.SALE: "Satış",
}
UNKNOWN_ITEM = "Bilinmeyen"


class DateFilter(str, enum.Enum):
    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


def local_zone() -> tzinfo:
    return ZoneInfo(get_settings().local_timezone)


def to_local(value: datetime, tz: tzinfo) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz)


def _month_earlier(moment: datetime) -> datetime:
    year, month = (moment.year, moment.month - 1) if moment.month > 1 else (moment.year - 1, 12)
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def period_start(date_filter: DateFilter | str, now: datetime) -> datetime | None:
    date_filter = DateFilter(date_filter)
    if date_filter is DateFilter.ALL:
        return None
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if date_filter is DateFilter.TODAY:
        return midnight
    if date_filter is DateFilter.WEEK:
        return midnight - timedelta(days=7)
    return _month_earlier(midnight)


def filter_movements(
    movements: Iterable[Row],
    date_filter: DateFilter | str = DateFilter.ALL,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> list[Row]:
    """Keep movements created at or after the start of the selected period.

    Periods start at local midnight, so a movement stamped exactly at
    midnight belongs to that day.
    """
    tz = tz or local_zone()
    now = to_local(now, tz) if now is not None else datetime.now(tz)
    start = period_start(date_filter, now)
    if start is None:
        return list(movements)
    return [row for row in movements if to_local(row["created_at"], tz) >= start]


def with_item_names(movements: Iterable[Row], items: Iterable[Row]) -> list[Row]:
    names = {item["id"]: item["name"] for item in items}
    rows = list(movements)
    reversed_ids = {row["reversal_of_id"] for row in rows if row.get("reversal_of_id") is not None}
    return [
        {
            **row,
            "item_name": names.get(row["item_id"]),
            "is_reversed": row["id"] in reversed_ids,
        }
        for row in rows
    ]


def search_catalog(categories: Iterable[Row], items: Iterable[Row], query: str = "") -> list[dict]:
    """Group items under their categories, narrowed by a search query.

    A category whose name matches keeps all of its items; otherwise only
    items whose names match are kept, and empty categories are dropped.
    """
    needle = (query or "").strip().casefold()
    by_category: dict[int, list[Row]] = {}
    for item in items:
        by_category.setdefault(item["category_id"], []).append(item)

    groups = []
    for category in categories:
        category_items = by_category.get(category["id"], [])
        if not needle:
            groups.append({"category": category, "items": category_items, "category_matched": False})
            continue
        if needle in category["name"].casefold():
            groups.append({"category": category, "items": category_items, "category_matched": True})
            continue
        matches = [item for item in category_items if needle in item["name"].casefold()]
        if matches:
            groups.append({"category": category, "items": matches, "category_matched": False})
    return groups


def export_movements_csv(movements: Iterable[Row], tz: tzinfo | None = None) -> bytes:
    tz = tz or local_zone()
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for row in movements:
        writer.writerow(
            [
                to_local(row["created_at"], tz).strftime("%d.%m.%Y %H:%M:%S"),
                row.get("item_name") or UNKNOWN_ITEM,
                ACTION_NAMES[MovementType(row["movement_type"])],
                str(row["quantity"]),
            ]
        )
    # BOM so spreadsheet tools pick UTF-8.
    return buffer.getvalue().encode("utf-8-sig")


def export_filename(day: date | None = None) -> str:
    day = day or datetime.now(local_zone()).date()
    return f"stok-gecmisi-{day.isoformat()}.csv"
