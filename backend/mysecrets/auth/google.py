# mysecrets/auth/google.py
"""
Google ID token verification.

Responsibilities:
- Lazy JWKS fetching (no network calls on import)
- In-memory JWKS caching with configurable TTL
- Clear typed exceptions internally, collapsed to ``None`` for callers
"""
from __future__ import annotations

import json
import logging
import ssl
import threading
import time
from typing import Any, Optional
from urllib.request import urlopen

import certifi
from jose import JWTError, jwk, jwt

from mysecrets.auth.identity import FederatedIdentity
from mysecrets.core.config import settings

logger = logging.getLogger(__name__)

GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class GoogleVerificationError(Exception):
    """Base exception for Google ID token verification failures."""


class GoogleNotConfiguredError(GoogleVerificationError):
    """Raised when GOOGLE_CLIENT_ID is not configured."""


class GoogleJWKSFetchError(GoogleVerificationError):
    """Raised when Google's JWKS cannot be fetched."""


class GoogleInvalidTokenError(GoogleVerificationError):
    """Raised for signature, claim or format failures."""


# ---------------------------------------------------------------------------
# JWKS Cache
# ---------------------------------------------------------------------------


class _JWKSCache:
    """
    Thread-safe in-memory cache for Google's signing keys.

    Populated lazily on first verification; TTL is GOOGLE_JWKS_CACHE_SECONDS.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._keys: dict[str, Any] | None = None
        self._fetched_at: float = 0.0

    def get_signing_key(self, kid: str) -> Any:
        with self._lock:
            now = time.time()
            ttl = settings.GOOGLE_JWKS_CACHE_SECONDS

            if self._keys is None or (now - self._fetched_at) > ttl:
                self._refresh_keys()

            if kid not in self._keys:
                # Google rotates keys; try one refresh.
                self._refresh_keys()

            if kid not in self._keys:
                raise GoogleInvalidTokenError(f"Signing key not found for kid: {kid}")

            return self._keys[kid]

    def _refresh_keys(self) -> None:
        jwks_url = settings.GOOGLE_JWKS_URL
        try:
            logger.info("Fetching Google JWKS from %s", jwks_url)
            context = ssl.create_default_context(cafile=certifi.where())
            with urlopen(jwks_url, timeout=10, context=context) as resp:
                data = json.loads(resp.read().decode("utf-8"))
        except Exception as e:
            logger.error("Failed to fetch Google JWKS: %s", e)
            raise GoogleJWKSFetchError(f"Failed to fetch JWKS: {e}") from e

        keys_list = data.get("keys", [])
        if not keys_list:
            raise GoogleJWKSFetchError("JWKS response contains no keys")

        self._keys = {}
        for key_data in keys_list:
            kid = key_data.get("kid")
            if kid:
                try:
                    self._keys[kid] = jwk.construct(key_data, algorithm="RS256")
                except Exception as e:
                    logger.warning("Failed to construct key for kid=%s: %s", kid, e)

        self._fetched_at = time.time()
        logger.info("Cached %d Google signing keys", len(self._keys))

    def clear(self) -> None:
        with self._lock:
            self._keys = None
            self._fetched_at = 0.0


_jwks_cache = _JWKSCache()


def clear_jwks_cache() -> None:
    """Clear the JWKS cache. Exposed for testing."""
    _jwks_cache.clear()


# ---------------------------------------------------------------------------
# Token Verification
# ---------------------------------------------------------------------------


def decode_google_id_token(id_token: str) -> dict[str, Any]:
    """
    Verify a Google ID token and return its claims.

    Validates signature (RS256 via JWKS), exp/iat, issuer, audience
    (GOOGLE_CLIENT_ID) and email_verified.
    """
    client_id = settings.GOOGLE_CLIENT_ID
    if not client_id:
        raise GoogleNotConfiguredError("GOOGLE_CLIENT_ID is not configured")

    try:
        unverified_header = jwt.get_unverified_header(id_token)
    except JWTError as e:
        raise GoogleInvalidTokenError(f"Invalid token header: {e}") from e

    kid = unverified_header.get("kid")
    if not kid:
        raise GoogleInvalidTokenError("Token header missing 'kid' claim")

    signing_key = _jwks_cache.get_signing_key(kid)

    try:
        claims = jwt.decode(
            id_token,
            signing_key,
            algorithms=["RS256"],
            audience=client_id,
            # Google uses two issuer spellings; checked below.
            options={"verify_iss": False, "verify_at_hash": False},
        )
    except JWTError as e:
        raise GoogleInvalidTokenError(f"Token validation failed: {e}") from e

    if claims.get("iss") not in GOOGLE_ISSUERS:
        raise GoogleInvalidTokenError(f"Unexpected issuer {claims.get('iss')}")

    if not claims.get("sub") or not claims.get("email"):
        raise GoogleInvalidTokenError("Token missing sub/email")

    if claims.get("email_verified") not in (True, "true"):
        raise GoogleInvalidTokenError("Google email is not verified")

    return claims


def verify_google_id_token(id_token: str) -> Optional[FederatedIdentity]:
    """Return the verified identity, or None when the token cannot be trusted."""
    try:
        claims = decode_google_id_token(id_token)
    except GoogleNotConfiguredError:
        logger.error("Google login attempted but GOOGLE_CLIENT_ID is not configured")
        return None
    except GoogleVerificationError as e:
        logger.warning("Invalid Google ID token: %s", e)
        return None

    return FederatedIdentity.from_google_claims(claims)
