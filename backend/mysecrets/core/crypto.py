# mysecrets/core/crypto.py
"""
Per-user authenticated encryption for stored secret passwords.

- Key derivation: HKDF-SHA256(master_key, info="my-secrets-user-key-{user_id}") -> 32 bytes
- Cipher: AES-256-GCM, random 96-bit nonce per call, 128-bit tag
- Stored blob: base64(nonce[12] || ciphertext || tag[16])

Derived keys are recomputed on every call and never cached or persisted.
Never log plaintext or ciphertext values.
"""
from __future__ import annotations

import base64
import binascii
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from mysecrets.core.config import MASTER_KEY_BYTES
from mysecrets.core.errors import DecryptionError, ValidationError

logger = logging.getLogger(__name__)

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16  # 128-bit GCM tag
KEY_LENGTH = 32  # AES-256

USER_KEY_CONTEXT = "my-secrets-user-key-{user_id}"


def derive_user_key(master_key: bytes, user_id: str) -> bytes:
    """Derive the 32-byte AES key for one user from the master key."""
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,
        info=USER_KEY_CONTEXT.format(user_id=user_id).encode("utf-8"),
    )
    return hkdf.derive(master_key)


class EncryptionEngine:
    def __init__(self, master_key: bytes) -> None:
        if len(master_key) != MASTER_KEY_BYTES:
            raise ValueError(f"master key must be exactly {MASTER_KEY_BYTES} bytes")
        self._master_key = master_key

    def encrypt(self, plaintext: str, user_id: str) -> str:
        if not plaintext:
            raise ValidationError("Plain text cannot be empty")

        cipher = AESGCM(derive_user_key(self._master_key, str(user_id)))
        nonce = os.urandom(NONCE_SIZE)
        # AESGCM appends the tag: ct || tag
        ct = cipher.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + ct).decode("ascii")

    def decrypt(self, blob: str, user_id: str) -> str:
        """
        Fails closed: any malformed, truncated, tampered or foreign-key blob
        raises DecryptionError, never returns a wrong plaintext.
        """
        if not blob:
            raise DecryptionError()

        try:
            raw = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError):
            raise DecryptionError()

        if len(raw) < NONCE_SIZE + TAG_SIZE:
            raise DecryptionError()

        cipher = AESGCM(derive_user_key(self._master_key, str(user_id)))
        nonce = raw[:NONCE_SIZE]
        ct = raw[NONCE_SIZE:]
        try:
            plain = cipher.decrypt(nonce, ct, None)
        except InvalidTag:
            logger.warning("Secret blob failed authentication for user_id=%s", user_id)
            raise DecryptionError()

        try:
            return plain.decode("utf-8")
        except UnicodeDecodeError:
            raise DecryptionError()
