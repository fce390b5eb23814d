# mysecrets/models/audit_event.py
from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from mysecrets.core.base import Base


class AuditEvent(Base):
    """Append-only audit record. No foreign keys: rows outlive their subjects."""

    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, index=True)

    # auth | secret_access | export
    category = Column(String(30), nullable=False, index=True)
    # e.g. Login, Register, RefreshToken, Logout, PasswordDecrypted, Export
    action = Column(String(50), nullable=False, index=True)

    user_id = Column(String(36), nullable=True, index=True)
    email = Column(String(256), nullable=True)
    secret_id = Column(String(36), nullable=True)

    success = Column(Boolean, nullable=False, default=True)
    reason = Column(String(255), nullable=True)
    details = Column(String(512), nullable=True)
    ip_address = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
