from fastapi import APIRouter

from physio_stock.api.routes import auth, categories, dashboard, items, movements


api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["Oturum"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["Panel"])
api_router.include_router(categories.router, prefix="/categories", tags=["Kategoriler"])
api_router.include_router(items.router, prefix="/items", tags=["Ürünler"])
api_router.include_router(movements.router, prefix="/movements", tags=["Stok Hareketleri"])
