from fastapi import APIRouter, Depends, Query, Response, status

from physio_stock.api.deps import (
    confirmation,
    get_current_user,
    get_gateway,
    get_query_cache,
    item_payload,
    query_response,
    settings,
)
from physio_stock.models.user import User
from physio_stock.schemas.item import ItemCreate, ItemRead, ItemUpdate
from physio_stock.schemas.movement import MovementCreate, MovementResult
from physio_stock.schemas.query import QueryResponse
from physio_stock.services.catalog import CatalogService
from physio_stock.services.gateway import Gateway
from physio_stock.services.ledger import StockLedger
from physio_stock.services.query_cache import QueryCache, make_key


router = APIRouter()


@router.get("", response_model=QueryResponse[list[ItemRead]])
def list_items(
    category_id: int | None = Query(default=None),
    gateway: Gateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_query_cache),
    current_user: User = Depends(get_current_user),
):
    state = cache.fetch(
        make_key("items", current_user.id, category_id=category_id),
        lambda: [ItemRead(**item_payload(row)) for row in CatalogService(gateway).list_items(category_id)],
        enabled=current_user.is_active,
    )
    return query_response(state)


@router.post("", response_model=ItemRead, status_code=status.HTTP_201_CREATED)
def create_item(
    payload: ItemCreate,
    gateway: Gateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_query_cache),
) -> ItemRead:
    row, invalidates = CatalogService(gateway).create_item(payload.category_id, payload.name)
    cache.invalidate(*invalidates)
    return ItemRead(**item_payload(row))


@router.patch("/{item_id}", response_model=ItemRead)
def rename_item(
    item_id: int,
    payload: ItemUpdate,
    gateway: Gateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_query_cache),
) -> ItemRead:
    row, invalidates = CatalogService(gateway).rename_item(item_id, payload.name)
    cache.invalidate(*invalidates)
    return ItemRead(**item_payload(row))


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(
    item_id: int,
    confirmed: bool = Query(default=False),
    gateway: Gateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_query_cache),
) -> Response:
    invalidates = CatalogService(gateway, confirm=confirmation(confirmed)).delete_item(item_id)
    cache.invalidate(*invalidates)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{item_id}/movements", response_model=MovementResult, status_code=status.HTTP_201_CREATED)
def record_movement(
    item_id: int,
    payload: MovementCreate,
    gateway: Gateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_query_cache),
) -> MovementResult:
    ledger = StockLedger(
        gateway,
        confirm=confirmation(payload.confirmed),
        large_quantity=settings.large_quantity_threshold,
    )
    result = ledger.apply_movement(
        item_id,
        payload.quantity,
        payload.movement_type,
        payload.current_stock,
        expected_version=payload.expected_version,
    )
    cache.invalidate(*result.invalidates)
    return MovementResult(
        new_stock=result.new_stock,
        item=ItemRead(**item_payload(result.item)),
        movement={**result.movement, "item_name": result.item["name"]},
    )
