from fastapi import APIRouter, Depends, Query

from physio_stock.api.deps import get_gateway, item_payload
from physio_stock.schemas.category import CategoryRead
from physio_stock.schemas.item import ItemRead, SearchGroup
from physio_stock.services.catalog import CatalogService
from physio_stock.services.gateway import Gateway
from physio_stock.services.history import search_catalog


router = APIRouter()


@router.get("")
def dashboard(
    q: str = Query(default=""),
    gateway: Gateway = Depends(get_gateway),
) -> dict:
    catalog = CatalogService(gateway)
    items = [item_payload(row) for row in catalog.list_items()]
    groups = search_catalog(catalog.list_categories(), items, q)

    return {
        "query": q.strip(),
        "total_items": len(items),
        "low_stock_items": sum(1 for item in items if item["stock_status"] == "low"),
        "out_of_stock_items": sum(1 for item in items if item["stock_status"] == "out"),
        "groups": [
            SearchGroup(
                category=CategoryRead(**group["category"]),
                items=[ItemRead(**item) for item in group["items"]],
                category_matched=group["category_matched"],
            ).model_dump(mode="json")
            for group in groups
        ],
    }
