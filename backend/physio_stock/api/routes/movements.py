from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import JSONResponse

from physio_stock.api.deps import (
    confirmation,
    get_current_user,
    get_gateway,
    get_query_cache,
    item_payload,
    query_response,
    settings,
)
from physio_stock.core.errors import TransportError
from physio_stock.models.user import User
from physio_stock.schemas.item import ItemRead
from physio_stock.schemas.movement import MovementRead, UndoRequest, UndoResult
from physio_stock.schemas.query import QueryResponse
from physio_stock.services.gateway import Gateway, Row
from physio_stock.services.history import (
    DateFilter,
    export_filename,
    export_movements_csv,
    filter_movements,
    with_item_names,
)
from physio_stock.services.ledger import StockLedger
from physio_stock.services.query_cache import QueryCache, QueryState, make_key


router = APIRouter()


def load_history(gateway: Gateway, item_id: int | None) -> list[Row]:
    filters = {"item_id": item_id} if item_id is not None else None
    movements = gateway.select(
        "stock_movements",
        filters=filters,
        order_by="created_at",
        descending=True,
        limit=settings.history_limit,
    )
    return with_item_names(movements, gateway.select("items"))


def fetch_history(gateway: Gateway, cache: QueryCache, user: User, item_id: int | None) -> QueryState:
    return cache.fetch(
        make_key("stock_movements", user.id, item_id=item_id),
        lambda: load_history(gateway, item_id),
        enabled=user.is_active,
    )


@router.get("", response_model=QueryResponse[list[MovementRead]])
def list_movements(
    item_id: int | None = Query(default=None),
    period: DateFilter = Query(default=DateFilter.ALL),
    gateway: Gateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_query_cache),
    current_user: User = Depends(get_current_user),
):
    state = fetch_history(gateway, cache, current_user, item_id)
    if state.data is not None:
        rows = filter_movements(state.data, period)
        state = QueryState(
            data=[MovementRead(**row) for row in rows],
            is_loading=state.is_loading,
            error=state.error,
            updated_at=state.updated_at,
            is_stale=state.is_stale,
        )
    return query_response(state)


@router.get("/export.csv")
def export_movements(
    item_id: int | None = Query(default=None),
    period: DateFilter = Query(default=DateFilter.ALL),
    gateway: Gateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_query_cache),
    current_user: User = Depends(get_current_user),
) -> Response:
    state = fetch_history(gateway, cache, current_user, item_id)
    if state.data is None:
        raise TransportError(state.error)

    rows = filter_movements(state.data, period)
    if not rows:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Bu dönemde hareket yok"})
    return Response(
        content=export_movements_csv(rows),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@router.post("/{movement_id}/undo", response_model=UndoResult)
def undo_movement(
    movement_id: int,
    payload: UndoRequest | None = None,
    gateway: Gateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_query_cache),
) -> UndoResult:
    confirmed = payload.confirmed if payload else False
    result = StockLedger(gateway, confirm=confirmation(confirmed)).undo_movement(movement_id)
    cache.invalidate(*result.invalidates)
    return UndoResult(
        new_stock=result.new_stock,
        reversed_movement_id=result.reversed_movement_id,
        item=ItemRead(**item_payload(result.item)),
        movement={**result.movement, "item_name": result.item["name"]},
    )
