import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from physio_stock.api.routes import api_router
from physio_stock.core.config import check_backend_config, get_settings
from physio_stock.core.errors import LedgerError
from physio_stock.core.logging import configure_logging
from physio_stock.db.base import Base
from physio_stock.db.session import get_engine
from physio_stock.services.query_cache import QueryCache


logger = logging.getLogger(__name__)

settings = get_settings()
app = FastAPI(title=settings.app_name)
app.state.query_cache = QueryCache(stale_time=settings.query_stale_seconds, retry=settings.query_retry)
app.state.backend_configured = False
app.state.backend_ready = False

origins = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(_request: Request, exc: LedgerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


def create_schema(retries: int = 20) -> bool:
    engine = get_engine()
    while retries > 0:
        try:
            Base.metadata.create_all(bind=engine)
            return True
        except OperationalError as exc:
            retries -= 1
            if retries == 0:
                logger.error("Database unreachable, giving up: %s", exc)
                return False
            time.sleep(1)
    return False


@app.on_event("startup")
def startup_event() -> None:
    configure_logging(settings.log_level)
    app.state.backend_configured = check_backend_config(settings)
    if not app.state.backend_configured:
        logger.error("Starting without a backend; data endpoints will answer 503")
        return
    app.state.backend_ready = create_schema()


@app.get("/")
def root() -> dict:
    return {
        "name": "Fizyo Stok API",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
def health() -> dict:
    configured = app.state.backend_configured
    return {
        "status": "ok" if configured and app.state.backend_ready else "degraded",
        "backend_configured": configured,
        "schema_ready": app.state.backend_ready,
    }


app.include_router(api_router, prefix=settings.api_v1_prefix)


def run() -> None:
    import uvicorn

    uvicorn.run("physio_stock.main:app", host=settings.bind_host, port=settings.port)


if __name__ == "__main__":
    run()
