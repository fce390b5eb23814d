from __future__ import annotations

import re
from typing import List

from mysecrets.core.config import settings
from mysecrets.core.errors import ValidationError

COMMON_WEAK_PASSWORDS = {
    "password",
    "password1",
    "password123",
    "password1!",
    "123456",
    "12345678",
    "qwerty",
    "qwerty123",
    "abc123",
    "letmein",
    "iloveyou",
    "admin",
    "admin123",
    "welcome",
    "welcome1",
    "passw0rd",
    "p@ssw0rd",
    "trustno1",
}

_UPPERCASE_RE = re.compile(r"[A-Z]")
_LOWERCASE_RE = re.compile(r"[a-z]")
_NUMBER_RE = re.compile(r"[0-9]")
_SPECIAL_RE = re.compile(r"[^A-Za-z0-9]")


def _normalize(value: str | None) -> str:
    return (value or "").strip().lower()


def evaluate_password(password: str, *, email: str | None = None) -> List[str]:
    """
    Returns a list of violation codes if the password does not meet policy.
    """
    pw = password or ""
    violations: list[str] = []
    min_length = max(int(getattr(settings, "PASSWORD_MIN_LENGTH", 8) or 0), 1)
    max_length = int(getattr(settings, "PASSWORD_MAX_LENGTH", 128))

    if len(pw) < min_length:
        violations.append("min_length")
    if len(pw) > max_length:
        violations.append("max_length")
    if not _UPPERCASE_RE.search(pw):
        violations.append("uppercase")
    if not _LOWERCASE_RE.search(pw):
        violations.append("lowercase")
    if not _NUMBER_RE.search(pw):
        violations.append("number")
    if not _SPECIAL_RE.search(pw):
        violations.append("special_char")

    normalized_pw = pw.lower()

    local_part = _normalize(email).split("@")[0]
    # Very short local parts ("a@x.com") would match almost anything.
    if len(local_part) >= 3 and local_part in normalized_pw:
        violations.append("contains_email")

    if normalized_pw in COMMON_WEAK_PASSWORDS:
        violations.append("denylist_common")

    return violations


def ensure_strong_password(password: str, *, email: str | None = None) -> None:
    violations = evaluate_password(password, email=email)
    if violations:
        raise ValidationError(
            "Password does not meet requirements.",
            details={"code": "WEAK_PASSWORD", "violations": violations},
        )
