"""JWT and service-token helpers."""
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from parcelhub.core.config import get_settings

security = HTTPBearer(auto_error=False)

ROLES = frozenset({"user", "admin"})


@dataclass(slots=True, frozen=True)
class Principal:
    user_id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "unauthenticated", "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(user_id: str, role: str = "user", expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    if role not in ROLES:
        raise ValueError(f"unknown role {role!r}")
    expire_delta = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": user_id,
        "role": role,
        "exp": datetime.now(timezone.utc) + expire_delta,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Principal:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as exc:
        raise _unauthorized("Could not validate credentials") from exc

    user_id = payload.get("sub")
    role = payload.get("role") or "user"
    if not user_id or role not in ROLES:
        raise _unauthorized("Could not validate credentials")
    return Principal(user_id=str(user_id), role=role)


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Principal:
    if credentials is None:
        raise _unauthorized("Not authenticated")
    return decode_access_token(credentials.credentials)


async def get_current_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "unauthorized", "message": "Admin privileges required"},
        )
    return principal


async def require_bridge_token(x_bridge_token: Optional[str] = Header(default=None)) -> None:
    """Authenticate the payment bridge by its shared service token."""
    expected = get_settings().security.bridge_token.get_secret_value()
    if not x_bridge_token or not secrets.compare_digest(x_bridge_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthenticated", "message": "Invalid bridge token"},
        )
