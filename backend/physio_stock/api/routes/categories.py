from fastapi import APIRouter, Depends, Query, Response, status

from physio_stock.api.deps import confirmation, get_current_user, get_gateway, get_query_cache, query_response
from physio_stock.models.user import User
from physio_stock.schemas.category import CategoryCreate, CategoryRead, CategoryUpdate
from physio_stock.schemas.query import QueryResponse
from physio_stock.services.catalog import CatalogService
from physio_stock.services.gateway import Gateway
from physio_stock.services.query_cache import QueryCache, make_key


router = APIRouter()


@router.get("", response_model=QueryResponse[list[CategoryRead]])
def list_categories(
    gateway: Gateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_query_cache),
    current_user: User = Depends(get_current_user),
):
    state = cache.fetch(
        make_key("categories", current_user.id),
        lambda: [CategoryRead(**row) for row in CatalogService(gateway).list_categories()],
        enabled=current_user.is_active,
    )
    return query_response(state)


@router.post("", response_model=CategoryRead, status_code=status.HTTP_201_CREATED)
def create_category(
    payload: CategoryCreate,
    gateway: Gateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_query_cache),
) -> CategoryRead:
    row, invalidates = CatalogService(gateway).create_category(payload.name)
    cache.invalidate(*invalidates)
    return CategoryRead(**row)


@router.patch("/{category_id}", response_model=CategoryRead)
def rename_category(
    category_id: int,
    payload: CategoryUpdate,
    gateway: Gateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_query_cache),
) -> CategoryRead:
    row, invalidates = CatalogService(gateway).rename_category(category_id, payload.name)
    cache.invalidate(*invalidates)
    return CategoryRead(**row)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(
    category_id: int,
    confirmed: bool = Query(default=False),
    gateway: Gateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_query_cache),
) -> Response:
    invalidates = CatalogService(gateway, confirm=confirmation(confirmed)).delete_category(category_id)
    cache.invalidate(*invalidates)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
