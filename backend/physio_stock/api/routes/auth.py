import logging
from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from physio_stock.api.deps import get_current_user, get_query_cache
from physio_stock.core.security import create_access_token, hash_password, verify_password
from physio_stock.db.session import get_db
from physio_stock.models.user import User
from physio_stock.schemas.auth import LoginRequest, MessageResponse, RegisterRequest, TokenResponse
from physio_stock.schemas.user import UserRead
from physio_stock.services.query_cache import QueryCache


logger = logging.getLogger(__name__)
router = APIRouter()


async def parse_request_payload(request: Request) -> dict:
    content_type = (request.headers.get("content-type") or "").split(";")[0].strip().lower()

    if content_type == "application/json":
        return await request.json()

    raw = (await request.body()).decode("utf-8", errors="ignore")
    if not raw:
        return {}

    parsed = parse_qs(raw, keep_blank_values=True)
    payload = {key: values[0] if values else "" for key, values in parsed.items()}
    # OAuth2 password form sends the e-mail as "username".
    if "username" in payload and "email" not in payload:
        payload["email"] = payload.pop("username")
    return payload


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)) -> UserRead:
    email = payload.email.lower()
    if db.scalar(select(User).where(User.email == email)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Bu e-posta adresi zaten kayıtlı")

    user = User(email=email, hashed_password=hash_password(payload.password))
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User %s registered", user.id)
    return UserRead(id=user.id, email=user.email, created_at=user.created_at)


@router.post("/login", response_model=TokenResponse)
async def login(request: Request, db: Session = Depends(get_db)) -> TokenResponse:
    payload_data = await parse_request_payload(request)
    try:
        payload = LoginRequest(**payload_data)
    except ValidationError:
        raise HTTPException(status_code=422, detail="Geçerli bir e-posta adresi girin")

    user = db.scalar(select(User).where(User.email == payload.email.lower()))
    if not user or not user.is_active or not verify_password(payload.password, user.hashed_password):
        logger.warning("Failed sign-in for %s", payload.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="E-posta veya şifre hatalı")

    token = create_access_token(subject=str(user.id), token_version=user.token_version)
    return TokenResponse(access_token=token)


@router.post("/logout", response_model=MessageResponse)
def logout(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
) -> MessageResponse:
    current_user.token_version += 1
    db.add(current_user)
    db.commit()
    cache.clear(user_id=current_user.id)
    return MessageResponse(message="Çıkış yapıldı")


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)) -> UserRead:
    return UserRead(id=current_user.id, email=current_user.email, created_at=current_user.created_at)
