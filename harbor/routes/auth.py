# Bearer-token identity for the checkout API.
# Accounts and login live in the platform's user service; this module only mints
# and verifies the HS256 tokens it shares with that service.
from __future__ import annotations

import os
import time
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Header, status
from sqlalchemy.orm import Session

from ..db import get_db
from .. import models

JWT_SECRET: str = os.getenv("HARBOR_JWT_SECRET", "dev-secret-change-me")
JWT_ALG: str = "HS256"
JWT_TTL_SECONDS: int = 60 * 60 * 24 * 7  # 7 days


def create_access_token(*, user: models.User, ttl_seconds: int = JWT_TTL_SECONDS) -> str:
    now = int(time.time())
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role,
        "iat": now,
        "exp": now + ttl_seconds,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc


def bearer_token_from_auth_header(authorization: Optional[str]) -> str:
    if not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authorization header missing")
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid Authorization header")
    return parts[1]


def get_current_user(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> models.User:
    payload = decode_token(bearer_token_from_auth_header(authorization))
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    user = db.get(models.User, int(user_id))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def require_guest(user: models.User = Depends(get_current_user)) -> models.User:
    if user.role != "guest":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Guest role required")
    return user


def require_host(user: models.User = Depends(get_current_user)) -> models.User:
    if user.role != "host":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Host role required")
    return user
