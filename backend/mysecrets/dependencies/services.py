# mysecrets/dependencies/services.py
"""
Process-wide collaborators, built once from settings and read-only afterwards.
Tests swap them through ``app.dependency_overrides``.
"""
from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Request

from mysecrets.auth.google import verify_google_id_token
from mysecrets.auth.identity import IdentityVerifier
from mysecrets.core.config import load_master_key, settings
from mysecrets.core.crypto import EncryptionEngine
from mysecrets.core.database import SessionLocal
from mysecrets.core.security import TokenIssuer
from mysecrets.services.audit import AuditSink
from mysecrets.services.auth import AuthOrchestrator
from mysecrets.services.refresh_tokens import RefreshTokenStore


@lru_cache
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(settings.token_settings())


@lru_cache
def get_encryption_engine() -> EncryptionEngine:
    return EncryptionEngine(load_master_key())


@lru_cache
def get_audit_sink() -> AuditSink:
    return AuditSink(SessionLocal)


def get_google_verifier() -> IdentityVerifier:
    return verify_google_id_token


def get_token_store(issuer: TokenIssuer = Depends(get_token_issuer)) -> RefreshTokenStore:
    return RefreshTokenStore(issuer)


def get_auth_orchestrator(
    token_store: RefreshTokenStore = Depends(get_token_store),
    audit: AuditSink = Depends(get_audit_sink),
    google_verifier: IdentityVerifier = Depends(get_google_verifier),
) -> AuthOrchestrator:
    return AuthOrchestrator(token_store=token_store, audit=audit, google_verifier=google_verifier)


def get_client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None
