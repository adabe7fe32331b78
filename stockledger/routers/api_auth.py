from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..core.security import issue_token_pair, refresh_access_token
from ..crud.users import authenticate
from ..db.session import get_db
from ..deps.auth import Principal, require_principal
from ..schemas.auth import LoginRequest, MeResponse, RefreshRequest, TokenResponse

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])
logger = logging.getLogger("stockledger.auth")


@router.post("/login", response_model=TokenResponse, summary="Exchange email or user id and password for JWTs")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate(db, payload.login, payload.password)
    if user is None:
        logger.info("auth.login.failed", extra={"extra_data": {"login": payload.login}})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    pair = issue_token_pair(user.user_id, user.role, name=user.display_name)
    return TokenResponse(**pair.model_dump(), user_id=user.user_id, role=user.role)


@router.post("/refresh", response_model=TokenResponse, summary="Refresh access token")
async def refresh_token(payload: RefreshRequest):
    try:
        pair = refresh_access_token(payload.refresh_token)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    return TokenResponse(**pair.model_dump())


@router.get("/me", response_model=MeResponse)
async def me(principal: Principal = Depends(require_principal)):
    return MeResponse(subject=principal.subject, role=principal.role, scheme=principal.scheme, name=principal.name)
