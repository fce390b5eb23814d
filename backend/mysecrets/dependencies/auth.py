# mysecrets/dependencies/auth.py
from __future__ import annotations

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from mysecrets.core.database import get_db
from mysecrets.core.errors import Unauthenticated
from mysecrets.core.security import TokenIssuer
from mysecrets.dependencies.services import get_token_issuer
from mysecrets.models.user import User
from mysecrets.services.users import get_user_by_id

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> User:
    """
    Validates:
      - Authorization: Bearer <token>
      - token signature, issuer, audience, exp (no leeway)
      - user exists + is_active
    Returns:
      - User SQLAlchemy model
    """
    if not creds or creds.scheme.lower() != "bearer":
        raise Unauthenticated("Missing Authorization header")

    payload = issuer.decode_access_token(creds.credentials)

    user_id = str(payload.get("sub") or "").strip()
    if not user_id:
        raise Unauthenticated("Invalid or expired token")

    user = get_user_by_id(db, user_id)
    if not user:
        raise Unauthenticated("User not found")
    if not user.is_active:
        raise Unauthenticated("User is inactive")

    return user
