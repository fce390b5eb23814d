# mysecrets/models/user.py
import uuid

from sqlalchemy import Boolean, Column, DateTime, String, func

from mysecrets.core.base import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)

    # Always stored normalized (stripped + lowercased)
    email = Column(String(256), unique=True, index=True, nullable=False)

    # Empty for Google-only accounts
    password_hash = Column(String(255), nullable=False, default="")

    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")

    is_google_user = Column(Boolean, nullable=False, default=False)
    google_id = Column(String(255), unique=True, index=True, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)
