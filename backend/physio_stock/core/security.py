from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from physio_stock.core.config import get_settings
from physio_stock.core.errors import BackendNotConfigured


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def _signing_key() -> str:
    settings = get_settings()
    if not settings.secret_key:
        raise BackendNotConfigured()
    return settings.secret_key


def create_access_token(subject: str, token_version: int = 0, expires_delta: int | None = None) -> str:
    settings = get_settings()
    expire_minutes = expires_delta if expires_delta else settings.access_token_expire_minutes
    expire = datetime.now(timezone.utc) + timedelta(minutes=expire_minutes)
    to_encode: dict[str, Any] = {"sub": subject, "ver": token_version, "exp": expire}
    return jwt.encode(to_encode, _signing_key(), algorithm="HS256")


def decode_access_token(token: str) -> dict[str, Any] | None:
    try:
        return jwt.decode(token, _signing_key(), algorithms=["HS256"])
    except JWTError:
        return None
