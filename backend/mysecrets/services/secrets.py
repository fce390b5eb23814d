from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import asc, desc, or_
from sqlalchemy.orm import Session

from mysecrets.core.crypto import EncryptionEngine
from mysecrets.core.errors import NotFound
from mysecrets.models.secret import Secret
from mysecrets.schemas.secret import SecretCreate, SecretUpdate

MAX_PAGE_SIZE = 50
DEFAULT_PAGE_SIZE = 10

_SORT_COLUMNS = {
    "website_url": Secret.website_url,
    "username": Secret.username,
    "category": Secret.category,
    "created_at": Secret.created_at,
    "updated_at": Secret.updated_at,
}


@dataclass(frozen=True)
class SecretPage:
    items: List[Secret]
    page: int
    page_size: int
    total_count: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.page_size else 0

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages


def _clean_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    s = value.strip()
    return s or None


def get_secret_for_user(db: Session, secret_id: str, user_id: str) -> Secret:
    # Scoped by owner: another user's secret is indistinguishable from a miss.
    secret = (
        db.query(Secret)
        .filter(Secret.id == secret_id, Secret.user_id == user_id)
        .first()
    )
    if not secret:
        raise NotFound("Secret not found")
    return secret


def create_secret(db: Session, engine: EncryptionEngine, user_id: str, payload: SecretCreate) -> Secret:
    secret = Secret(
        user_id=user_id,
        website_url=payload.website_url.strip(),
        username=payload.username.strip(),
        encrypted_password=engine.encrypt(payload.password, user_id),
        notes=_clean_optional(payload.notes),
        category=_clean_optional(payload.category),
        is_favorite=payload.is_favorite,
    )
    db.add(secret)
    db.commit()
    db.refresh(secret)
    return secret


def update_secret(db: Session, engine: EncryptionEngine, secret: Secret, payload: SecretUpdate) -> Secret:
    data = payload.model_dump(exclude_unset=True)
    if not data:
        return secret

    password = data.pop("password", None)
    if password:
        secret.encrypted_password = engine.encrypt(password, secret.user_id)

    for field in ("website_url", "username"):
        if data.get(field) is not None:
            setattr(secret, field, data[field].strip())
    for field in ("notes", "category"):
        if field in data:
            setattr(secret, field, _clean_optional(data[field]))
    if data.get("is_favorite") is not None:
        secret.is_favorite = bool(data["is_favorite"])

    db.commit()
    db.refresh(secret)
    return secret


def toggle_favorite(db: Session, secret: Secret) -> Secret:
    secret.is_favorite = not bool(secret.is_favorite)
    db.commit()
    db.refresh(secret)
    return secret


def delete_secret(db: Session, secret: Secret) -> None:
    db.delete(secret)
    db.commit()


def decrypt_password(engine: EncryptionEngine, secret: Secret) -> str:
    """Raises DecryptionError when the stored blob does not authenticate for its owner."""
    return engine.decrypt(secret.encrypted_password, secret.user_id)


def list_secrets(
    db: Session,
    user_id: str,
    *,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    q: Optional[str] = None,
    category: Optional[str] = None,
    is_favorite: Optional[bool] = None,
    sort_by: Optional[str] = None,
    sort_desc: bool = False,
) -> SecretPage:
    page = max(int(page or 1), 1)
    page_size = min(max(int(page_size or DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)

    qry = db.query(Secret).filter(Secret.user_id == user_id)  # scope

    if q:
        term = str(q).strip()
        if term:
            like = f"%{term}%"
            qry = qry.filter(
                or_(
                    Secret.website_url.ilike(like),
                    Secret.username.ilike(like),
                    Secret.notes.ilike(like),
                )
            )

    if category:
        c = str(category).strip()
        if c:
            qry = qry.filter(Secret.category == c)

    if is_favorite is not None:
        qry = qry.filter(Secret.is_favorite.is_(bool(is_favorite)))

    total = qry.count()

    column = _SORT_COLUMNS.get(sort_by or "", Secret.created_at)
    if sort_by is None:
        # Newest first unless the caller picked a sort
        order = desc(column)
    else:
        order = desc(column) if sort_desc else asc(column)

    items = qry.order_by(order, asc(Secret.id)).offset((page - 1) * page_size).limit(page_size).all()
    return SecretPage(items=items, page=page, page_size=page_size, total_count=total)


def export_rows(db: Session, user_id: str) -> List[Secret]:
    """Secrets for export, ordered by website. Passwords stay encrypted."""
    return (
        db.query(Secret)
        .filter(Secret.user_id == user_id)
        .order_by(asc(Secret.website_url), asc(Secret.id))
        .all()
    )
