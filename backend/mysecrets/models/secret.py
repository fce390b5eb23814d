# mysecrets/models/secret.py
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, func

from mysecrets.core.base import Base


class Secret(Base):
    __tablename__ = "secrets"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    website_url = Column(String(2048), nullable=False)
    username = Column(String(256), nullable=False)

    # base64(nonce || ciphertext || tag), produced by EncryptionEngine for user_id
    encrypted_password = Column(Text, nullable=False)

    notes = Column(Text, nullable=True)
    category = Column(String(100), nullable=True, index=True)
    is_favorite = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())
