from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request, Response
from sqlalchemy.orm import Session

from mysecrets.core.config import settings
from mysecrets.core.errors import InvalidToken, ReuseDetected
from mysecrets.core.security import AccessToken, TokenIssuer
from mysecrets.models.refresh_token import RefreshToken
from mysecrets.models.user import User

logger = logging.getLogger(__name__)

REASON_REPLACED = "Replaced by new token"
REASON_LOGOUT = "Logged out"
REASON_REUSE = "Reuse detected"
REASON_LOGOUT_ALL = "Logged out everywhere"


@dataclass(frozen=True)
class IssuedTokens:
    user: User
    access_token: AccessToken
    refresh_token: str


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class RefreshTokenStore:
    """
    Persists refresh-token hashes and enforces single-use rotation.

    Token state: Active -> Revoked (terminal). An expired token is unusable
    but only an explicitly revoked one counts as a reuse signal.
    Linearizability per token comes from a conditional UPDATE gated on
    ``is_revoked = false``; no in-process locking.
    """

    def __init__(self, issuer: TokenIssuer) -> None:
        self.issuer = issuer

    @property
    def lifetime(self) -> timedelta:
        return timedelta(days=self.issuer.config.refresh_token_days)

    def issue_and_store(self, db: Session, user_id: str, ip_address: Optional[str]) -> tuple[str, RefreshToken]:
        """
        Creates a new refresh token record (flushed, not committed) and
        returns the raw secret with it. The caller owns the commit.
        """
        raw = self.issuer.generate_refresh_secret()
        rt = RefreshToken(
            user_id=user_id,
            token_hash=self.issuer.hash_token(raw),
            expires_at=_now_utc() + self.lifetime,
            is_revoked=False,
            created_by_ip=ip_address,
        )
        db.add(rt)
        db.flush()
        return raw, rt

    def issue_tokens(self, db: Session, user: User, ip_address: Optional[str]) -> IssuedTokens:
        """Access token + stored refresh token for a freshly authenticated user."""
        raw, _ = self.issue_and_store(db, user.id, ip_address)
        return IssuedTokens(user=user, access_token=self.issuer.issue_access_token(user), refresh_token=raw)

    def get_by_secret(self, db: Session, raw_token: str) -> Optional[RefreshToken]:
        if not raw_token:
            return None
        token_hash = self.issuer.hash_token(raw_token)
        return db.query(RefreshToken).filter(RefreshToken.token_hash == token_hash).first()

    def _mark_revoked(
        self,
        db: Session,
        token_id: str,
        *,
        reason: str,
        ip_address: Optional[str],
        replaced_by_hash: Optional[str] = None,
    ) -> bool:
        """Compare-and-swap on is_revoked. True only for the caller that flipped it."""
        values = {
            RefreshToken.is_revoked: True,
            RefreshToken.revoked_at: _now_utc(),
            RefreshToken.revoked_reason: reason,
            RefreshToken.revoked_by_ip: ip_address,
        }
        if replaced_by_hash is not None:
            values[RefreshToken.replaced_by_token_hash] = replaced_by_hash
        updated = (
            db.query(RefreshToken)
            .filter(RefreshToken.id == token_id, RefreshToken.is_revoked.is_(False))
            .update(values, synchronize_session=False)
        )
        return updated == 1

    def revoke_all_for_user(self, db: Session, user_id: str, reason: str, ip_address: Optional[str]) -> int:
        """Revoke every active token of the user (flushed, not committed). Returns the count."""
        count = (
            db.query(RefreshToken)
            .filter(
                RefreshToken.user_id == user_id,
                RefreshToken.is_revoked.is_(False),
                RefreshToken.expires_at > _now_utc(),
            )
            .update(
                {
                    RefreshToken.is_revoked: True,
                    RefreshToken.revoked_at: _now_utc(),
                    RefreshToken.revoked_reason: reason,
                    RefreshToken.revoked_by_ip: ip_address,
                },
                synchronize_session=False,
            )
        )
        logger.info("Revoked %d refresh tokens for user_id=%s reason=%s", count, user_id, reason)
        return count

    def _handle_reuse(self, db: Session, user_id: str, ip_address: Optional[str]) -> ReuseDetected:
        self.revoke_all_for_user(db, user_id, REASON_REUSE, ip_address)
        db.commit()
        logger.warning("Refresh token reuse detected for user_id=%s ip=%s; all sessions revoked", user_id, ip_address)
        return ReuseDetected()

    def rotate(self, db: Session, presented: str, ip_address: Optional[str]) -> IssuedTokens:
        """
        Exchange an active refresh token for a new access + refresh pair.

        Raises:
            InvalidToken: unknown, expired, or owner missing/inactive
            ReuseDetected: token was already revoked (all user tokens are revoked)
        """
        rt = self.get_by_secret(db, presented)
        if rt is None:
            raise InvalidToken()

        user_id = rt.user_id
        if not rt.is_active():
            if rt.is_revoked:
                raise self._handle_reuse(db, user_id, ip_address)
            raise InvalidToken()

        user = db.query(User).filter(User.id == user_id).first()
        if user is None or not user.is_active:
            raise InvalidToken("User not found or inactive")

        new_raw = self.issuer.generate_refresh_secret()
        new_hash = self.issuer.hash_token(new_raw)

        if not self._mark_revoked(
            db, rt.id, reason=REASON_REPLACED, ip_address=ip_address, replaced_by_hash=new_hash
        ):
            # A concurrent rotation or logout won the race: same as presenting a revoked token.
            db.rollback()
            raise self._handle_reuse(db, user_id, ip_address)

        db.add(
            RefreshToken(
                user_id=user.id,
                token_hash=new_hash,
                expires_at=_now_utc() + self.lifetime,
                is_revoked=False,
                created_by_ip=ip_address,
            )
        )
        db.commit()

        return IssuedTokens(user=user, access_token=self.issuer.issue_access_token(user), refresh_token=new_raw)

    def revoke(self, db: Session, presented: str, ip_address: Optional[str], reason: str = REASON_LOGOUT) -> Optional[str]:
        """
        Idempotent revoke used by logout. Returns the owning user id when this
        call revoked an active token, else None. Never raises for bad input.
        """
        rt = self.get_by_secret(db, presented)
        if rt is None or not rt.is_active():
            return None
        user_id = rt.user_id
        if not self._mark_revoked(db, rt.id, reason=reason, ip_address=ip_address):
            db.rollback()
            return None
        db.commit()
        return user_id


# -----------------------------
# Cookie helpers
# -----------------------------
def refresh_cookie_max_age_seconds() -> int:
    days = int(getattr(settings, "REFRESH_TOKEN_EXPIRE_DAYS", 7))
    return days * 86400


def cookie_name() -> str:
    return str(getattr(settings, "REFRESH_COOKIE_NAME", "refresh_token")).strip() or "refresh_token"


def cookie_path() -> str:
    # Keep refresh cookie scoped to auth endpoints by default
    return str(getattr(settings, "REFRESH_COOKIE_PATH", "/auth")).strip() or "/auth"


def cookie_secure() -> bool:
    # Prod => HTTPS => Secure cookies. Dev http://localhost => must be False.
    return settings.is_prod or bool(getattr(settings, "REFRESH_COOKIE_SECURE", False))


def cookie_samesite() -> str:
    v = str(getattr(settings, "REFRESH_COOKIE_SAMESITE", "lax")).lower().strip()
    if v not in {"lax", "strict", "none"}:
        return "lax"
    return v


def set_refresh_cookie(resp: Response, raw_refresh_token: str) -> None:
    resp.set_cookie(
        key=cookie_name(),
        value=raw_refresh_token,
        httponly=True,
        secure=cookie_secure(),
        samesite=cookie_samesite(),
        max_age=refresh_cookie_max_age_seconds(),
        path=cookie_path(),
        domain=settings.REFRESH_COOKIE_DOMAIN,
    )


def clear_refresh_cookie(resp: Response) -> None:
    resp.delete_cookie(
        key=cookie_name(),
        path=cookie_path(),
        domain=settings.REFRESH_COOKIE_DOMAIN,
    )


def read_refresh_cookie(req: Request) -> str | None:
    val = req.cookies.get(cookie_name())
    if not val:
        return None
    val = val.strip()
    return val or None
