# mysecrets/auth/identity.py
"""
Verified federated identity.

Produced by an external identity verifier after it has checked the provider's
token. It is INTERNAL ONLY and never returned to clients.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol


@dataclass(frozen=True)
class FederatedIdentity:
    subject: str
    email: str
    first_name: str = ""
    last_name: str = ""
    picture_url: Optional[str] = None

    @classmethod
    def from_google_claims(cls, claims: Mapping[str, Any]) -> FederatedIdentity:
        """Build from verified Google ID token claims, splitting `name` when given/family are absent."""
        full_name = str(claims.get("name") or "").strip()
        parts = full_name.split(" ", 1) if full_name else []
        first = claims.get("given_name") or (parts[0] if parts else "")
        last = claims.get("family_name") or (parts[1] if len(parts) > 1 else "")
        return cls(
            subject=str(claims.get("sub") or ""),
            email=str(claims.get("email") or ""),
            first_name=str(first),
            last_name=str(last),
            picture_url=claims.get("picture"),
        )


class IdentityVerifier(Protocol):
    def __call__(self, id_token: str) -> Optional[FederatedIdentity]:
        ...
