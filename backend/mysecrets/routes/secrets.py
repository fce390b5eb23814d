# mysecrets/routes/secrets.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from mysecrets.core.crypto import EncryptionEngine
from mysecrets.core.database import get_db
from mysecrets.dependencies.auth import get_current_user
from mysecrets.dependencies.services import get_audit_sink, get_client_ip, get_encryption_engine
from mysecrets.models.user import User
from mysecrets.schemas.secret import (
    DecryptedPasswordOut,
    SecretCreate,
    SecretListOut,
    SecretOut,
    SecretUpdate,
    SortField,
)
from mysecrets.services import secrets as secrets_service
from mysecrets.services.audit import AuditSink

router = APIRouter(prefix="/secrets", tags=["secrets"], dependencies=[Depends(get_current_user)])


@router.post("/", response_model=SecretOut, status_code=201)
def create_secret(
    payload: SecretCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    engine: EncryptionEngine = Depends(get_encryption_engine),
    audit: AuditSink = Depends(get_audit_sink),
    ip: str | None = Depends(get_client_ip),
):
    secret = secrets_service.create_secret(db, engine, user.id, payload)
    audit.record_secret_access(user_id=user.id, secret_id=secret.id, action="Created", ip_address=ip)
    return secret


@router.get("/", response_model=SecretListOut)
def list_secrets(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=secrets_service.DEFAULT_PAGE_SIZE, ge=1),
    q: Optional[str] = None,
    category: Optional[str] = None,
    is_favorite: Optional[bool] = None,
    sort_by: Optional[SortField] = None,
    sort_desc: bool = False,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = secrets_service.list_secrets(
        db,
        user.id,
        page=page,
        page_size=page_size,
        q=q,
        category=category,
        is_favorite=is_favorite,
        sort_by=sort_by,
        sort_desc=sort_desc,
    )
    return {
        "items": result.items,
        "page": result.page,
        "page_size": result.page_size,
        "total_count": result.total_count,
        "total_pages": result.total_pages,
        "has_previous_page": result.has_previous_page,
        "has_next_page": result.has_next_page,
    }


@router.get("/{secret_id}", response_model=SecretOut)
def get_secret(
    secret_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return secrets_service.get_secret_for_user(db, secret_id, user.id)


@router.patch("/{secret_id}", response_model=SecretOut)
def update_secret(
    secret_id: str,
    payload: SecretUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    engine: EncryptionEngine = Depends(get_encryption_engine),
    audit: AuditSink = Depends(get_audit_sink),
    ip: str | None = Depends(get_client_ip),
):
    secret = secrets_service.get_secret_for_user(db, secret_id, user.id)
    secret = secrets_service.update_secret(db, engine, secret, payload)
    audit.record_secret_access(user_id=user.id, secret_id=secret.id, action="Updated", ip_address=ip)
    return secret


@router.post("/{secret_id}/favorite", response_model=SecretOut)
def toggle_favorite(
    secret_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    secret = secrets_service.get_secret_for_user(db, secret_id, user.id)
    return secrets_service.toggle_favorite(db, secret)


@router.delete("/{secret_id}", status_code=204)
def delete_secret(
    secret_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    audit: AuditSink = Depends(get_audit_sink),
    ip: str | None = Depends(get_client_ip),
):
    secret = secrets_service.get_secret_for_user(db, secret_id, user.id)
    secrets_service.delete_secret(db, secret)
    audit.record_secret_access(user_id=user.id, secret_id=secret_id, action="Deleted", ip_address=ip)
    return Response(status_code=204)


@router.get("/{secret_id}/password", response_model=DecryptedPasswordOut)
def decrypt_password(
    secret_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    engine: EncryptionEngine = Depends(get_encryption_engine),
    audit: AuditSink = Depends(get_audit_sink),
    ip: str | None = Depends(get_client_ip),
):
    secret = secrets_service.get_secret_for_user(db, secret_id, user.id)
    password = secrets_service.decrypt_password(engine, secret)
    audit.record_secret_access(user_id=user.id, secret_id=secret.id, action="PasswordDecrypted", ip_address=ip)
    return {"id": secret.id, "password": password}
