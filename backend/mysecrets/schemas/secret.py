# mysecrets/schemas/secret.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class SecretCreate(BaseModel):
    website_url: str = Field(min_length=1, max_length=2048)
    username: str = Field(min_length=1, max_length=256)
    password: str = Field(min_length=1, max_length=1024)
    notes: Optional[str] = Field(default=None, max_length=4000)
    category: Optional[str] = Field(default=None, max_length=100)
    is_favorite: bool = False


class SecretUpdate(BaseModel):
    website_url: Optional[str] = Field(default=None, min_length=1, max_length=2048)
    username: Optional[str] = Field(default=None, min_length=1, max_length=256)
    # Only re-encrypted when provided
    password: Optional[str] = Field(default=None, min_length=1, max_length=1024)
    notes: Optional[str] = Field(default=None, max_length=4000)
    category: Optional[str] = Field(default=None, max_length=100)
    is_favorite: Optional[bool] = None


class SecretOut(BaseModel):
    """Never carries the encrypted blob or plaintext."""

    id: str
    website_url: str
    username: str
    notes: Optional[str] = None
    category: Optional[str] = None
    is_favorite: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SecretListOut(BaseModel):
    items: List[SecretOut]
    page: int
    page_size: int
    total_count: int
    total_pages: int
    has_previous_page: bool
    has_next_page: bool


class DecryptedPasswordOut(BaseModel):
    id: str
    password: str


SortField = Literal["website_url", "username", "category", "created_at", "updated_at"]
