# mysecrets/services/auth.py
"""
Login / register / Google / refresh / logout flows.

This is the only auth component the API layer calls. Every flow emits an
audit event; audit failures never affect the outcome.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mysecrets.auth.identity import IdentityVerifier
from mysecrets.core.errors import (
    AccountInactive,
    EmailConflict,
    EmailExists,
    InvalidCredentials,
    InvalidToken,
    ReuseDetected,
)
from mysecrets.core.password_policy import ensure_strong_password
from mysecrets.core.security import hash_password, verify_password
from mysecrets.services import users as users_service
from mysecrets.services.audit import AuditSink
from mysecrets.services.refresh_tokens import REASON_LOGOUT_ALL, IssuedTokens, RefreshTokenStore

logger = logging.getLogger(__name__)

ACTION_REGISTER = "Register"
ACTION_LOGIN = "Login"
ACTION_GOOGLE_LOGIN = "GoogleLogin"
ACTION_REFRESH = "RefreshToken"
ACTION_LOGOUT = "Logout"
ACTION_LOGOUT_ALL = "LogoutAll"

# Verified against when the email is unknown so both paths cost one hash check.
_DUMMY_HASH = hash_password("timing-equalizer-not-a-real-password")


class AuthOrchestrator:
    def __init__(
        self,
        *,
        token_store: RefreshTokenStore,
        audit: AuditSink,
        google_verifier: IdentityVerifier,
    ) -> None:
        self.tokens = token_store
        self.audit = audit
        self.google_verifier = google_verifier

    # -----------------------------
    # Register
    # -----------------------------
    def register(
        self,
        db: Session,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        ip_address: Optional[str] = None,
    ) -> IssuedTokens:
        email_norm = users_service.normalize_email(email)
        ensure_strong_password(password, email=email_norm)

        if users_service.email_exists(db, email_norm):
            self.audit.record_auth_event(
                action=ACTION_REGISTER, success=False, email=email_norm, ip_address=ip_address,
                reason="Email already exists",
            )
            raise EmailExists()

        try:
            user = users_service.create_password_user(
                db,
                email=email_norm,
                password_hash=hash_password(password),
                first_name=first_name,
                last_name=last_name,
            )
            issued = self.tokens.issue_tokens(db, user, ip_address)
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same email.
            db.rollback()
            self.audit.record_auth_event(
                action=ACTION_REGISTER, success=False, email=email_norm, ip_address=ip_address,
                reason="Email already exists",
            )
            raise EmailExists()

        self.audit.record_auth_event(
            action=ACTION_REGISTER, success=True, user_id=user.id, email=user.email, ip_address=ip_address,
        )
        return issued

    # -----------------------------
    # Login
    # -----------------------------
    def login(self, db: Session, *, email: str, password: str, ip_address: Optional[str] = None) -> IssuedTokens:
        email_norm = users_service.normalize_email(email)
        user = users_service.get_user_by_email(db, email_norm)

        def fail(reason: str, user_id: Optional[str] = None) -> None:
            self.audit.record_auth_event(
                action=ACTION_LOGIN, success=False, user_id=user_id, email=email_norm, ip_address=ip_address,
                reason=reason,
            )

        if user is None:
            verify_password(password, _DUMMY_HASH)
            fail("User not found")
            raise InvalidCredentials()

        if user.is_google_user and not user.has_password:
            verify_password(password, _DUMMY_HASH)
            fail("Google user attempted password login", user.id)
            raise InvalidCredentials()

        if not verify_password(password, user.password_hash):
            fail("Invalid password", user.id)
            raise InvalidCredentials()

        if not user.is_active:
            fail("Account inactive", user.id)
            raise AccountInactive()

        users_service.touch_last_login(user)
        issued = self.tokens.issue_tokens(db, user, ip_address)
        db.commit()

        self.audit.record_auth_event(
            action=ACTION_LOGIN, success=True, user_id=user.id, email=user.email, ip_address=ip_address,
        )
        return issued

    # -----------------------------
    # Google
    # -----------------------------
    def google_login(self, db: Session, *, id_token: str, ip_address: Optional[str] = None) -> IssuedTokens:
        identity = self.google_verifier(id_token)
        if identity is None:
            self.audit.record_auth_event(
                action=ACTION_GOOGLE_LOGIN, success=False, ip_address=ip_address, reason="Invalid Google token",
            )
            raise InvalidCredentials("Invalid Google token")

        email_norm = users_service.normalize_email(identity.email)
        user = users_service.get_user_by_google_id(db, identity.subject)
        issued: Optional[IssuedTokens] = None

        if user is None:
            existing = users_service.get_user_by_email(db, email_norm)
            if existing is not None and not existing.is_google_user:
                self.audit.record_auth_event(
                    action=ACTION_GOOGLE_LOGIN, success=False, user_id=existing.id, email=email_norm,
                    ip_address=ip_address, reason="Email already registered with password",
                )
                raise EmailConflict()
            if existing is not None:
                # Google account whose subject does not match the stored one.
                self.audit.record_auth_event(
                    action=ACTION_GOOGLE_LOGIN, success=False, user_id=existing.id, email=email_norm,
                    ip_address=ip_address, reason="Google subject mismatch",
                )
                raise EmailConflict("An account with this email is linked to a different Google identity.")
            try:
                user = users_service.create_google_user(db, identity)
                issued = self.tokens.issue_tokens(db, user, ip_address)
                db.commit()
            except IntegrityError:
                # A concurrent first login may have provisioned the same identity.
                db.rollback()
                user = users_service.get_user_by_google_id(db, identity.subject)
                if user is None:
                    self.audit.record_auth_event(
                        action=ACTION_GOOGLE_LOGIN, success=False, email=email_norm,
                        ip_address=ip_address, reason="Email already registered",
                    )
                    raise EmailConflict()
                issued = None

        if issued is None:
            if not user.is_active:
                self.audit.record_auth_event(
                    action=ACTION_GOOGLE_LOGIN, success=False, user_id=user.id, email=user.email,
                    ip_address=ip_address, reason="Account inactive",
                )
                raise AccountInactive()
            users_service.touch_last_login(user)
            issued = self.tokens.issue_tokens(db, user, ip_address)
            db.commit()

        self.audit.record_auth_event(
            action=ACTION_GOOGLE_LOGIN, success=True, user_id=user.id, email=user.email, ip_address=ip_address,
        )
        return issued

    # -----------------------------
    # Refresh
    # -----------------------------
    def refresh(self, db: Session, *, refresh_token: Optional[str], ip_address: Optional[str] = None) -> IssuedTokens:
        if not refresh_token:
            raise InvalidToken("Missing refresh token")

        try:
            issued = self.tokens.rotate(db, refresh_token, ip_address)
        except ReuseDetected:
            rt = self.tokens.get_by_secret(db, refresh_token)
            self.audit.record_auth_event(
                action=ACTION_REFRESH, success=False, user_id=rt.user_id if rt else None, ip_address=ip_address,
                reason="Token reuse detected - all tokens revoked",
            )
            raise
        except InvalidToken as e:
            self.audit.record_auth_event(
                action=ACTION_REFRESH, success=False, ip_address=ip_address, reason=e.message,
            )
            raise

        self.audit.record_auth_event(
            action=ACTION_REFRESH, success=True, user_id=issued.user.id, email=issued.user.email,
            ip_address=ip_address,
        )
        return issued

    # -----------------------------
    # Logout
    # -----------------------------
    def logout(self, db: Session, *, refresh_token: Optional[str], ip_address: Optional[str] = None) -> None:
        """Best effort. Missing, unknown or already inactive tokens are not errors."""
        user_id = self.tokens.revoke(db, refresh_token, ip_address) if refresh_token else None
        self.audit.record_auth_event(
            action=ACTION_LOGOUT, success=True, user_id=user_id, ip_address=ip_address,
            reason=None if user_id is not None else "No active token",
        )

    def logout_everywhere(self, db: Session, *, user_id: str, email: str, ip_address: Optional[str] = None) -> int:
        count = self.tokens.revoke_all_for_user(db, user_id, REASON_LOGOUT_ALL, ip_address)
        db.commit()
        self.audit.record_auth_event(
            action=ACTION_LOGOUT_ALL, success=True, user_id=user_id, email=email, ip_address=ip_address,
        )
        return count
