from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from mysecrets.models.audit_event import AuditEvent

logger = logging.getLogger(__name__)

CATEGORY_AUTH = "auth"
CATEGORY_SECRET_ACCESS = "secret_access"
CATEGORY_EXPORT = "export"


class AuditSink:
    """
    Write-only audit trail.

    Each event is written through its own short-lived session so an audit
    failure can never roll back (or be rolled back by) the caller's work.
    Failures are logged and swallowed.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def _write(self, event: AuditEvent) -> None:
        db = None
        try:
            db = self._session_factory()
            db.add(event)
            db.commit()
        except Exception:
            if db is not None:
                try:
                    db.rollback()
                except Exception:
                    logger.debug("Audit rollback failed", exc_info=True)
            logger.exception("Failed to write audit event action=%s category=%s", event.action, event.category)
        finally:
            if db is not None:
                db.close()

    def record_auth_event(
        self,
        *,
        action: str,
        success: bool,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
        ip_address: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        outcome = "Success" if success else "Failed"
        self._write(
            AuditEvent(
                category=CATEGORY_AUTH,
                action=action,
                user_id=user_id,
                email=email,
                success=success,
                reason=reason,
                details=f"Auth event: {action} for {email or 'unknown'} - {outcome}",
                ip_address=ip_address,
            )
        )

    def record_secret_access(
        self,
        *,
        user_id: str,
        secret_id: str,
        action: str,
        ip_address: Optional[str] = None,
    ) -> None:
        self._write(
            AuditEvent(
                category=CATEGORY_SECRET_ACCESS,
                action=action,
                user_id=user_id,
                secret_id=secret_id,
                success=True,
                details=f"Secret {secret_id} - {action}",
                ip_address=ip_address,
            )
        )

    def record_export(self, *, user_id: str, secret_count: int, ip_address: Optional[str] = None) -> None:
        self._write(
            AuditEvent(
                category=CATEGORY_EXPORT,
                action="Export",
                user_id=user_id,
                success=True,
                details=f"Exported {secret_count} secrets",
                ip_address=ip_address,
            )
        )
