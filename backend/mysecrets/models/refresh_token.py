# mysecrets/models/refresh_token.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.sql import func

from mysecrets.core.base import Base


def as_utc(dt: datetime) -> datetime:
    # SQLite round-trips tz-aware datetimes as naive; stored values are UTC.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Store ONLY a hash of the refresh token (never store raw refresh token)
    token_hash = Column(String(255), unique=True, index=True, nullable=False)

    # Absolute expiration for this refresh token
    expires_at = Column(DateTime(timezone=True), nullable=False)

    # Once set, never cleared
    is_revoked = Column(Boolean, nullable=False, default=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoked_reason = Column(String(255), nullable=True)
    revoked_by_ip = Column(String(64), nullable=True)

    # Hash of the token issued when this one was rotated
    replaced_by_token_hash = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    created_by_ip = Column(String(64), nullable=True)

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= as_utc(self.expires_at)

    def is_active(self, now: datetime | None = None) -> bool:
        return not self.is_revoked and not self.is_expired(now)
