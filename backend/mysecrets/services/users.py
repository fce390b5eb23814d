# mysecrets/services/users.py
"""
User lookup and provisioning helpers.

All cross-entity access is by explicit query; emails are always normalized
before they touch the database.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from mysecrets.auth.identity import FederatedIdentity
from mysecrets.models.user import User

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Look up a user by email address."""
    return db.query(User).filter(User.email == normalize_email(email)).first()


def get_user_by_google_id(db: Session, google_id: str) -> Optional[User]:
    """Look up a user by their Google subject identifier."""
    if not google_id:
        return None
    return db.query(User).filter(User.google_id == google_id).first()


def email_exists(db: Session, email: str) -> bool:
    return get_user_by_email(db, email) is not None


def create_password_user(
    db: Session,
    *,
    email: str,
    password_hash: str,
    first_name: str,
    last_name: str,
) -> User:
    """Add (not commit) a new local-password user."""
    user = User(
        email=normalize_email(email),
        password_hash=password_hash,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        is_google_user=False,
        google_id=None,
        is_active=True,
    )
    db.add(user)
    db.flush()
    return user


def create_google_user(db: Session, identity: FederatedIdentity) -> User:
    """
    Add (not commit) a new Google-backed user. Google users have no password.
    """
    if not identity.subject:
        raise ValueError("google subject is required")
    if not identity.email:
        raise ValueError("email is required")

    normalized_email = normalize_email(identity.email)
    user = User(
        email=normalized_email,
        password_hash="",
        first_name=normalize_name(identity.first_name),
        last_name=normalize_name(identity.last_name),
        is_google_user=True,
        google_id=identity.subject,
        is_active=True,
        last_login_at=datetime.now(timezone.utc),
    )
    db.add(user)
    db.flush()

    logger.info("Provisioned new Google user: id=%s, email=%s", user.id, normalized_email)
    return user


def touch_last_login(user: User) -> None:
    user.last_login_at = datetime.now(timezone.utc)


def normalize_name(name: str | None) -> str:
    if not name:
        return ""
    return name.strip()[:100]
