"""
Bearer token handling.

Tokens are issued by the identity service; this module only decodes them
and turns the claims into the requester a booking is made for.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from seat_engine.core.config import get_settings
from seat_engine.core.errors import NotAuthorized

STAFF_ROLES = frozenset({"operator", "admin"})

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class SelfRequester:
    """A customer booking for themselves."""

    user_id: str

    @property
    def actor_id(self) -> str:
        return self.user_id

    @property
    def owner_user_id(self) -> Optional[str]:
        return self.user_id

    @property
    def booking_type(self) -> str:
        return "online"


@dataclass(frozen=True)
class OnBehalfRequester:
    """Box-office staff booking for a walk-in customer; the booking has no owner."""

    operator_id: str

    @property
    def actor_id(self) -> str:
        return self.operator_id

    @property
    def owner_user_id(self) -> Optional[str]:
        return None

    @property
    def booking_type(self) -> str:
        return "offline"


BookingRequester = Union[SelfRequester, OnBehalfRequester]


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: str

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def as_requester(self) -> BookingRequester:
        if self.is_staff:
            return OnBehalfRequester(operator_id=self.user_id)
        return SelfRequester(user_id=self.user_id)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=30))
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Principal:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has no subject",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Principal(user_id=str(user_id), role=payload.get("role", "user"))


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return decode_access_token(credentials.credentials)


async def get_current_requester(
    principal: Principal = Depends(get_current_principal),
) -> BookingRequester:
    return principal.as_requester()


async def require_staff(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_staff:
        raise NotAuthorized("Operator role required")
    return principal
