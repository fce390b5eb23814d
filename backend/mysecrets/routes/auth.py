# mysecrets/routes/auth.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Request, Response
from sqlalchemy.orm import Session

from mysecrets.core.database import get_db
from mysecrets.dependencies.auth import get_current_user
from mysecrets.dependencies.services import get_auth_orchestrator, get_client_ip
from mysecrets.models.user import User
from mysecrets.schemas.auth import (
    AuthOut,
    GoogleLoginIn,
    LoginIn,
    LogoutAllOut,
    MeOut,
    MessageOut,
    RefreshIn,
    RegisterIn,
)
from mysecrets.services.auth import AuthOrchestrator
from mysecrets.services.refresh_tokens import (
    IssuedTokens,
    clear_refresh_cookie,
    read_refresh_cookie,
    set_refresh_cookie,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_response(response: Response, issued: IssuedTokens) -> dict:
    set_refresh_cookie(response, issued.refresh_token)
    user = issued.user
    return {
        "user_id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "access_token": issued.access_token.token,
        "token_type": "bearer",
        "expires_at": issued.access_token.expires_at,
    }


def _presented_refresh_token(request: Request, payload: Optional[RefreshIn]) -> str | None:
    raw = read_refresh_cookie(request)
    if raw:
        return raw
    if payload and payload.refresh_token:
        return payload.refresh_token.strip() or None
    return None


# -----------------------------
# Routes
# -----------------------------
@router.post("/register", response_model=AuthOut)
def register(
    payload: RegisterIn,
    response: Response,
    db: Session = Depends(get_db),
    auth: AuthOrchestrator = Depends(get_auth_orchestrator),
    ip: str | None = Depends(get_client_ip),
):
    issued = auth.register(
        db,
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        ip_address=ip,
    )
    return _auth_response(response, issued)


@router.post("/login", response_model=AuthOut)
def login(
    payload: LoginIn,
    response: Response,
    db: Session = Depends(get_db),
    auth: AuthOrchestrator = Depends(get_auth_orchestrator),
    ip: str | None = Depends(get_client_ip),
):
    issued = auth.login(db, email=payload.email, password=payload.password, ip_address=ip)
    return _auth_response(response, issued)


@router.post("/google", response_model=AuthOut)
def google_login(
    payload: GoogleLoginIn,
    response: Response,
    db: Session = Depends(get_db),
    auth: AuthOrchestrator = Depends(get_auth_orchestrator),
    ip: str | None = Depends(get_client_ip),
):
    issued = auth.google_login(db, id_token=payload.id_token, ip_address=ip)
    return _auth_response(response, issued)


@router.post("/refresh", response_model=AuthOut)
def refresh(
    request: Request,
    response: Response,
    payload: Optional[RefreshIn] = Body(default=None),
    db: Session = Depends(get_db),
    auth: AuthOrchestrator = Depends(get_auth_orchestrator),
    ip: str | None = Depends(get_client_ip),
):
    """
    Rotate refresh tokens via HttpOnly cookie:
      - read refresh token from cookie (or body fallback)
      - rotate (single use; reuse revokes every session of the user)
      - issue new refresh cookie
      - return new access token
    """
    issued = auth.refresh(db, refresh_token=_presented_refresh_token(request, payload), ip_address=ip)
    return _auth_response(response, issued)


@router.post("/logout", response_model=MessageOut)
def logout(
    request: Request,
    response: Response,
    payload: Optional[RefreshIn] = Body(default=None),
    db: Session = Depends(get_db),
    auth: AuthOrchestrator = Depends(get_auth_orchestrator),
    ip: str | None = Depends(get_client_ip),
):
    """
    Logout by revoking the refresh token (if present) and clearing cookie.
    Always succeeds.
    """
    auth.logout(db, refresh_token=_presented_refresh_token(request, payload), ip_address=ip)
    clear_refresh_cookie(response)
    return {"message": "Logged out"}


@router.post("/logout-all", response_model=LogoutAllOut)
def logout_all(
    response: Response,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    auth: AuthOrchestrator = Depends(get_auth_orchestrator),
    ip: str | None = Depends(get_client_ip),
):
    count = auth.logout_everywhere(db, user_id=user.id, email=user.email, ip_address=ip)
    clear_refresh_cookie(response)
    return {"message": "Logged out everywhere", "revoked": count}


@router.get("/me", response_model=MeOut)
def me(user: User = Depends(get_current_user)):
    return user
