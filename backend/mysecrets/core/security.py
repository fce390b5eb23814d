# mysecrets/core/security.py
from __future__ import annotations

import base64
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from hashlib import sha256
from typing import TYPE_CHECKING, Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from mysecrets.core.config import TokenSettings
from mysecrets.core.errors import Unauthenticated

if TYPE_CHECKING:
    from mysecrets.models.user import User

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

ACCESS_PURPOSE = "access"


# -------------------------
# Password hashing
# -------------------------
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    # Federated accounts carry an empty hash and can never match.
    if not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        return False


# -------------------------
# Access tokens
# -------------------------
def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AccessToken:
    token: str
    expires_at: datetime


class TokenIssuer:
    """Signs and validates short-lived access tokens; derives refresh-token hashes."""

    def __init__(self, config: TokenSettings) -> None:
        self.config = config

    def issue_access_token(self, user: User) -> AccessToken:
        """
        Access token used for API auth: Authorization: Bearer <token>
        subject = user's id
        """
        now = _now_utc()
        exp = now + timedelta(minutes=self.config.access_token_minutes)

        payload = {
            "sub": str(user.id),
            "email": user.email,
            "jti": str(uuid.uuid4()),
            "first_name": user.first_name or "",
            "last_name": user.last_name or "",
            "is_google_user": bool(user.is_google_user),
            "purpose": ACCESS_PURPOSE,
            "iss": self.config.issuer,
            "aud": self.config.audience,
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
        }

        token = jwt.encode(payload, self.config.secret, algorithm=self.config.algorithm)
        return AccessToken(token=token, expires_at=exp)

    def decode_access_token(self, token: str) -> dict[str, Any]:
        """
        Checks signature, issuer, audience and expiry (no leeway).
        Raises Unauthenticated on any failure.
        """
        try:
            payload = jwt.decode(
                token,
                self.config.secret,
                algorithms=[self.config.algorithm],
                audience=self.config.audience,
                issuer=self.config.issuer,
                options={"leeway": 0, "require_exp": True, "require_sub": True},
            )
        except JWTError:
            raise Unauthenticated("Invalid or expired token")

        if payload.get("purpose") != ACCESS_PURPOSE:
            raise Unauthenticated("Invalid token purpose")

        return payload

    # -------------------------
    # Refresh token helpers
    # -------------------------
    @staticmethod
    def generate_refresh_secret() -> str:
        """
        512 bits of randomness, url-safe base64.
        The raw value is ONLY returned to the client once.
        """
        return secrets.token_urlsafe(64)

    @staticmethod
    def hash_token(token: str) -> str:
        """
        Hash refresh token for DB storage (never store the raw token).
        """
        return base64.b64encode(sha256(token.encode("utf-8")).digest()).decode("ascii")
