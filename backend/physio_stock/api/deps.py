from fastapi import Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from physio_stock.core.config import get_settings
from physio_stock.core.errors import ConfirmationRequired
from physio_stock.core.security import decode_access_token
from physio_stock.db.session import get_db
from physio_stock.models.user import User
from physio_stock.schemas.query import QueryResponse
from physio_stock.services.catalog import stock_status
from physio_stock.services.gateway import Row, SqlGateway
from physio_stock.services.ledger import Confirm, PendingAction
from physio_stock.services.query_cache import QueryCache, QueryState


settings = get_settings()
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_v1_prefix}/auth/login")


def get_current_user(db: Session = Depends(get_db), token: str = Depends(oauth2_scheme)) -> User:
    claims = decode_access_token(token)
    if not claims:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Geçersiz oturum")

    try:
        user_id = int(claims.get("sub", ""))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Geçersiz oturum")
    token_version = int(claims.get("ver", 0))

    user = db.scalar(select(User).where(User.id == user_id))
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Oturum açılmamış")
    if user.token_version != token_version:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Oturum süresi doldu")
    return user


def get_gateway(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)) -> SqlGateway:
    return SqlGateway(db, owner_id=current_user.id)


def get_query_cache(request: Request) -> QueryCache:
    return request.app.state.query_cache


def confirmation(confirmed: bool) -> Confirm:
    """Confirmation port backed by the request's ``confirmed`` flag."""

    def confirm(action: PendingAction) -> bool:
        if not confirmed:
            raise ConfirmationRequired(action.message)
        return True

    return confirm


def item_payload(row: Row) -> dict:
    return {**row, "stock_status": stock_status(row["stock"], settings.low_stock_threshold)}


def query_response(state: QueryState) -> QueryResponse | JSONResponse:
    body = QueryResponse(data=state.data, is_loading=state.is_loading, error=state.error, is_stale=state.is_stale)
    if state.error is not None and state.data is None:
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=body.model_dump(mode="json"))
    return body
