# mysecrets/auth/__init__.py
"""
External identity verification.

This package contains:
- identity.py: provider-agnostic verified federated identity
- google.py: Google ID token verification (JWKS + RS256)
"""
from mysecrets.auth.identity import FederatedIdentity

__all__ = ["FederatedIdentity"]
