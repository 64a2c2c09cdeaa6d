from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi.security import OAuth2PasswordBearer
from jose import jwt
from pydantic import BaseModel, Field, field_validator

from app.till.core.config import settings

# Tokens are issued by the external identity provider; tokenUrl is documentation only.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


class TokenData(BaseModel):
    sub: str
    username: str | None = None
    roles: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)

    @field_validator("sub")
    @classmethod
    def _sub_is_admin_id(cls, value: str) -> str:
        if not value.isdigit() or int(value) <= 0:
            raise ValueError("sub must be a positive admin user id")
        return value

    @property
    def admin_user_id(self) -> int:
        return int(self.sub)


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def create_identity_token(
    admin_user_id: int,
    *,
    username: str | None = None,
    roles: list[str] | None = None,
    permissions: list[str] | None = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    return create_access_token(
        {
            "sub": str(admin_user_id),
            "username": username,
            "roles": list(roles or []),
            "permissions": list(permissions or []),
        },
        expires_delta=expires_delta,
    )
