from __future__ import annotations

import logging
from typing import Optional

import jwt
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import ExpiredSignatureError, InvalidTokenError

from game import admin_dump
from samloc.settings import get_settings

logger = logging.getLogger(__name__)
router = APIRouter()
http_bearer = HTTPBearer(auto_error=False)


async def get_admin_subject(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> str:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="credentials_not_provided")

    payload = _decode_token(credentials.credentials)
    sub = payload.get("sub")
    if not sub:
        logger.warning("Admin token rejected: missing subject")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_subject")
    if payload.get("role") != "admin":
        logger.warning("Admin token rejected: sub=%s is not an admin", sub)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin_only")
    return str(sub)


@router.get("/api/admin/rooms")
async def admin_rooms(subject: str = Depends(get_admin_subject)):
    logger.info("Admin dump requested by %s", subject)
    return admin_dump()


def _decode_token(token: str) -> dict:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except ExpiredSignatureError:
        logger.warning("Admin token rejected: expired signature (%s)", _short_token(token))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="token_expired")
    except InvalidTokenError:
        logger.warning("Admin token rejected: invalid token (%s)", _short_token(token))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")


def _short_token(token: str) -> str:
    if not token:
        return ""
    if len(token) <= 10:
        return token
    return f"{token[:5]}...{token[-5:]}"
